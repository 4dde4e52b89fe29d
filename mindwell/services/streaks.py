"""
Streaks: consecutive UTC days with a qualifying activity.

Walk backward one day at a time starting today. A day with a record extends
the streak. If today is still empty the streak is not broken yet: yesterday
gets exactly one grace check before the streak is declared 0. The walk stops
at MAX_STREAK days.

The overall streak is the minimum of the check-in, mindfulness and quick-mood
streaks: all three have to be kept up together.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from mindwell.core.timeutils import today as utc_today
from mindwell.models.goal import ActivityType
from mindwell.services.activity_counters import ActivityCounter, get_counter

MAX_STREAK = 365


@dataclass
class Streaks:
    checkin_streak: int
    mindfulness_streak: int
    quick_mood_streak: int
    overall_streak: int

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_streak(
    db: Session,
    user_id: int,
    counter: ActivityCounter,
    today: Optional[date] = None,
) -> int:
    streak = 0
    current = today or utc_today()

    while True:
        if counter.has_activity_on(db, user_id, current):
            streak += 1
            current -= timedelta(days=1)
        elif streak == 0:
            # Today not done yet: yesterday decides whether a streak is alive.
            current -= timedelta(days=1)
            if counter.has_activity_on(db, user_id, current):
                streak += 1
                current -= timedelta(days=1)
            else:
                break
        else:
            break

        if streak >= MAX_STREAK:
            break

    return streak


def calculate_checkin_streak(db: Session, user_id: int, today: Optional[date] = None) -> int:
    return calculate_streak(db, user_id, get_counter(ActivityType.check_in), today)


def get_streaks(db: Session, user_id: int, today: Optional[date] = None) -> Streaks:
    day = today or utc_today()
    checkin = calculate_checkin_streak(db, user_id, day)
    mindfulness = calculate_streak(db, user_id, get_counter(ActivityType.mindfulness), day)
    mood = calculate_streak(db, user_id, get_counter(ActivityType.quick_mood), day)
    return Streaks(
        checkin_streak=checkin,
        mindfulness_streak=mindfulness,
        quick_mood_streak=mood,
        overall_streak=min(checkin, mindfulness, mood),
    )
