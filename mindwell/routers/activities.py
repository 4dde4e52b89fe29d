"""
Structured activity router.

POST /moods          : log a quick mood entry
GET  /moods          : list mood entries (paginated)
GET  /moods/stats    : average, distribution, trend
POST /activities     : record a mindfulness activity completion
GET  /activities     : list completions (paginated, optional prefix filter)
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mindwell.db.base import get_db
from mindwell.models.activity import ActivityCompletion, MoodEntry
from mindwell.models.user import User
from mindwell.routers.deps import get_current_user
from mindwell.schemas.activity import (
    ActivityCreateRequest,
    ActivityListResponse,
    ActivityResponse,
    MoodEntryCreateRequest,
    MoodEntryListResponse,
    MoodEntryResponse,
    MoodStatsResponse,
)
from mindwell.services.activities import (
    create_mood_entry,
    get_mood_stats,
    list_activities,
    list_mood_entries,
    record_activity,
)

router = APIRouter(tags=["activities"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _mood_to_response(entry: MoodEntry) -> MoodEntryResponse:
    return MoodEntryResponse(
        id=entry.id,
        sentiment_score=float(entry.sentiment_score),
        sentiment_label=entry.sentiment_label,
        check_in_date=str(entry.check_in_date),
        created_at=entry.created_at.isoformat() if entry.created_at else "",
    )


def _activity_to_response(item: ActivityCompletion) -> ActivityResponse:
    return ActivityResponse(
        id=item.id,
        activity_id=item.activity_id,
        duration_seconds=item.duration_seconds,
        completed_at=item.completed_at.isoformat() if item.completed_at else "",
    )


# ---------------------------------------------------------------------------
# Moods
# ---------------------------------------------------------------------------

@router.post(
    "/moods",
    response_model=MoodEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log a quick mood entry",
    responses={422: {"description": "Validation error."}},
)
def create_mood(
    payload: MoodEntryCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Advances `quick_mood` goals."""
    entry = create_mood_entry(
        db, user.id,
        sentiment_score=payload.sentiment_score,
        sentiment_label=payload.sentiment_label,
        check_in_date=payload.check_in_date,
    )
    return _mood_to_response(entry)


@router.get(
    "/moods",
    response_model=MoodEntryListResponse,
    summary="List mood entries (newest first)",
)
def list_moods(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    limit: int = Query(default=30, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    total, items = list_mood_entries(
        db, user.id, start_date=start_date, end_date=end_date, limit=limit, offset=offset
    )
    return MoodEntryListResponse(total=total, items=[_mood_to_response(e) for e in items])


@router.get(
    "/moods/stats",
    response_model=MoodStatsResponse,
    summary="Mood statistics",
)
def mood_stats(
    days: Optional[int] = Query(default=None, ge=1, le=365, description="Look-back window."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MoodStatsResponse(**get_mood_stats(db, user.id, days=days).__dict__)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

@router.post(
    "/activities",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a mindfulness activity",
    responses={422: {"description": "Validation error."}},
)
def create_activity(
    payload: ActivityCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Advances `mindfulness` goals, plus `breathing` goals for ids starting
    with `breathing_` and `journaling` goals for ids starting with
    `journaling_`.
    """
    item = record_activity(
        db, user.id,
        activity_id=payload.activity_id,
        duration_seconds=payload.duration_seconds,
    )
    return _activity_to_response(item)


@router.get(
    "/activities",
    response_model=ActivityListResponse,
    summary="List activity completions (newest first)",
)
def list_all_activities(
    prefix: Optional[str] = Query(default=None, examples=["breathing_"]),
    limit: int = Query(default=30, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    total, items = list_activities(db, user.id, prefix=prefix, limit=limit, offset=offset)
    return ActivityListResponse(total=total, items=[_activity_to_response(a) for a in items])
