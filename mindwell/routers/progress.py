"""
Progress router.

GET  /progress/today               : which daily activities are done
GET  /progress/streaks             : check-in / mindfulness / mood / overall streaks
GET  /progress/achievements        : badge catalogue with unlock status
POST /progress/achievements/check  : evaluate and unlock earned badges
GET  /progress/challenges          : weekly challenges with progress
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mindwell.db.base import get_db
from mindwell.models.user import User
from mindwell.routers.deps import get_current_user
from mindwell.schemas.progress import (
    AchievementCheckResponse,
    AchievementsResponse,
    BadgeResponse,
    ChallengeListResponse,
    StreaksResponse,
    TodayProgressResponse,
)
from mindwell.services.badges import evaluate_badges, list_achievements
from mindwell.services.progress import get_challenges, get_today_progress
from mindwell.services.streaks import get_streaks

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/today", response_model=TodayProgressResponse, summary="Today's progress")
def today(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return TodayProgressResponse(**get_today_progress(db, user.id).to_dict())


@router.get("/streaks", response_model=StreaksResponse, summary="Current streaks")
def streaks(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    A streak is the run of consecutive UTC days with activity ending today,
    or ending yesterday when today has nothing yet. The overall streak is the
    smallest of the three.
    """
    return StreaksResponse(**get_streaks(db, user.id).to_dict())


@router.get(
    "/achievements",
    response_model=AchievementsResponse,
    summary="Badge catalogue with unlock status",
)
def achievements(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AchievementsResponse(**list_achievements(db, user.id))


@router.post(
    "/achievements/check",
    response_model=AchievementCheckResponse,
    summary="Evaluate badges",
)
def check_achievements(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Idempotent: badges already unlocked are reported, never re-awarded."""
    result = evaluate_badges(db, user.id)
    return AchievementCheckResponse(
        newly_unlocked=[
            BadgeResponse(**b.to_dict(), unlocked=True) for b in result.newly_unlocked
        ],
        already_unlocked=result.already_unlocked,
    )


@router.get("/challenges", response_model=ChallengeListResponse, summary="Weekly challenges")
def challenges(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ChallengeListResponse(challenges=get_challenges(db, user.id))
