"""
Daily progress and weekly challenges.

"Today" is the current UTC calendar day. Challenges look back over the seven
days before the start of today plus today itself.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from mindwell.core.timeutils import day_bounds, start_of_day, today as utc_today
from mindwell.models.goal import ActivityType
from mindwell.services.activity_counters import TimeWindow, get_counter

CHALLENGE_DAYS = 7
DAILY_GOALS = 3


@dataclass
class TodayProgress:
    has_checkin: bool
    has_mindfulness: bool
    has_quick_mood: bool
    completed_count: int
    total_goals: int = DAILY_GOALS

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Challenge:
    id: str
    name: str
    description: str
    target: int
    type: str
    reward: str
    duration_days: int = CHALLENGE_DAYS


CHALLENGES: list[Challenge] = [
    Challenge("daily_calm", "Daily Calm",
              "Complete a breathing exercise every day for 5 days",
              5, "breathing_streak", "50 mindfulness points"),
    Challenge("mood_awareness", "Mood Awareness",
              "Log your mood 10 times this week",
              10, "mood_count", "Unlock special insights"),
    Challenge("checkin_champion", "Check-in Champion",
              "Complete 5 full check-ins this week",
              5, "checkin_count", "Streak protection badge"),
]


def get_today_progress(db: Session, user_id: int, today: Optional[date] = None) -> TodayProgress:
    day = today or utc_today()
    checkin = get_counter(ActivityType.check_in).has_activity_on(db, user_id, day)
    mindful = get_counter(ActivityType.mindfulness).has_activity_on(db, user_id, day)
    mood = get_counter(ActivityType.quick_mood).has_activity_on(db, user_id, day)
    return TodayProgress(
        has_checkin=checkin,
        has_mindfulness=mindful,
        has_quick_mood=mood,
        completed_count=sum([checkin, mindful, mood]),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------

def _breathing_days(db: Session, user_id: int, window: TimeWindow) -> int:
    first = window.start.date()
    days = get_counter(ActivityType.breathing).active_days(db, user_id)
    return len({d for d in days if d >= first})


def _mood_count(db: Session, user_id: int, window: TimeWindow) -> int:
    return get_counter(ActivityType.quick_mood).count(db, user_id, window)


def _checkin_count(db: Session, user_id: int, window: TimeWindow) -> int:
    return get_counter(ActivityType.check_in).count(db, user_id, window)


_CHALLENGE_PROGRESS: dict[str, Callable[[Session, int, TimeWindow], int]] = {
    "breathing_streak": _breathing_days,
    "mood_count": _mood_count,
    "checkin_count": _checkin_count,
}


def get_challenges(db: Session, user_id: int, today: Optional[date] = None) -> list[dict]:
    day = today or utc_today()
    window = TimeWindow(
        start=start_of_day(day - timedelta(days=CHALLENGE_DAYS)),
        end=day_bounds(day)[1],
    )

    results = []
    for challenge in CHALLENGES:
        progress = _CHALLENGE_PROGRESS[challenge.type](db, user_id, window)
        results.append({
            **asdict(challenge),
            "progress": min(progress, challenge.target),
            "completed": progress >= challenge.target,
            "percentage": min(100, round(progress * 100 / challenge.target)),
        })
    return results
