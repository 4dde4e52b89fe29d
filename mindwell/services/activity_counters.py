"""
Activity counters: one capability over two heterogeneous stores.

Goal progress, streaks and badges all need "how many qualifying records does
this user have between start and end". Check-ins live in the free-text store;
mood entries and mindfulness completions live in the structured store. Each
store gets an `ActivityCounter` implementation and the activity-type → counter
routing is a registry, so callers never touch store-specific query syntax.

Registry (activity_type → counter)
----------------------------------
  check_in     → CheckinCounter()
  journaling   → CheckinCounter(text_only=True) + ActivityCompletionCounter("journaling_")
  quick_mood   → MoodEntryCounter()
  mindfulness  → ActivityCompletionCounter()
  breathing    → ActivityCompletionCounter("breathing_")

Any SQLAlchemy error raised while counting surfaces as DataUnavailableError.
Nothing is retried here.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.core.errors import DataUnavailableError, ValidationError
from mindwell.core.timeutils import as_utc, day_bounds
from mindwell.models.activity import (
    ActivityCompletion,
    MoodEntry,
    BREATHING_PREFIX,
    JOURNALING_PREFIX,
)
from mindwell.models.checkin import CheckinResponse
from mindwell.models.goal import ActivityType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open UTC interval [start, end)."""
    start: datetime
    end: datetime


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------

class ActivityCounter(ABC):
    """Counts one kind of activity record for a user."""

    source: str = "activity store"

    @abstractmethod
    def _count(self, db: Session, user_id: int, window: Optional[TimeWindow]) -> int:
        ...

    @abstractmethod
    def _timestamps(self, db: Session, user_id: int) -> list[datetime]:
        ...

    def count(self, db: Session, user_id: int, window: Optional[TimeWindow] = None) -> int:
        """Records in `window` (all time when window is None)."""
        try:
            return self._count(db, user_id, window)
        except SQLAlchemyError as exc:
            logger.error("Count failed on %s for user %s: %s", self.source, user_id, exc)
            raise DataUnavailableError(self.source, reason=str(exc)) from exc

    def has_activity_on(self, db: Session, user_id: int, day: date) -> bool:
        start, end = day_bounds(day)
        return self.count(db, user_id, TimeWindow(start, end)) > 0

    def active_days(self, db: Session, user_id: int) -> set[date]:
        """Distinct UTC calendar days with at least one record."""
        try:
            return {as_utc(ts).date() for ts in self._timestamps(db, user_id)}
        except SQLAlchemyError as exc:
            logger.error("Day scan failed on %s for user %s: %s", self.source, user_id, exc)
            raise DataUnavailableError(self.source, reason=str(exc)) from exc


# ---------------------------------------------------------------------------
# Free-text store
# ---------------------------------------------------------------------------

class CheckinCounter(ActivityCounter):
    source = "checkin store"

    def __init__(self, text_only: bool = False):
        self.text_only = text_only

    def _query(self, db: Session, column, user_id: int):
        q = db.query(column).filter(CheckinResponse.user_id == user_id)
        if self.text_only:
            q = q.filter(func.length(func.trim(CheckinResponse.check_in_text)) > 0)
        return q

    def _count(self, db, user_id, window):
        q = self._query(db, func.count(CheckinResponse.id), user_id)
        if window is not None:
            q = q.filter(
                CheckinResponse.created_at >= window.start,
                CheckinResponse.created_at < window.end,
            )
        return q.scalar() or 0

    def _timestamps(self, db, user_id):
        return [row[0] for row in self._query(db, CheckinResponse.created_at, user_id).all()]


# ---------------------------------------------------------------------------
# Structured store
# ---------------------------------------------------------------------------

class MoodEntryCounter(ActivityCounter):
    source = "mood store"

    def _count(self, db, user_id, window):
        q = db.query(func.count(MoodEntry.id)).filter(MoodEntry.user_id == user_id)
        if window is not None:
            q = q.filter(
                MoodEntry.created_at >= window.start,
                MoodEntry.created_at < window.end,
            )
        return q.scalar() or 0

    def _timestamps(self, db, user_id):
        rows = db.query(MoodEntry.created_at).filter(MoodEntry.user_id == user_id).all()
        return [row[0] for row in rows]


class ActivityCompletionCounter(ActivityCounter):
    source = "activity store"

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix

    def _query(self, db: Session, column, user_id: int):
        q = db.query(column).filter(ActivityCompletion.user_id == user_id)
        if self.prefix:
            q = q.filter(ActivityCompletion.activity_id.startswith(self.prefix, autoescape=True))
        return q

    def _count(self, db, user_id, window):
        q = self._query(db, func.count(ActivityCompletion.id), user_id)
        if window is not None:
            q = q.filter(
                ActivityCompletion.completed_at >= window.start,
                ActivityCompletion.completed_at < window.end,
            )
        return q.scalar() or 0

    def _timestamps(self, db, user_id):
        return [row[0] for row in self._query(db, ActivityCompletion.completed_at, user_id).all()]


class CompositeCounter(ActivityCounter):
    """Sum of several counters, possibly spanning both stores."""

    def __init__(self, *counters: ActivityCounter):
        self.counters = counters
        self.source = " + ".join(c.source for c in counters)

    def _count(self, db, user_id, window):
        return sum(c.count(db, user_id, window) for c in self.counters)

    def _timestamps(self, db, user_id):
        stamps: list[datetime] = []
        for c in self.counters:
            stamps.extend(c._timestamps(db, user_id))
        return stamps


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_COUNTERS: dict[str, ActivityCounter] = {
    ActivityType.check_in.value: CheckinCounter(),
    ActivityType.journaling.value: CompositeCounter(
        CheckinCounter(text_only=True),
        ActivityCompletionCounter(JOURNALING_PREFIX),
    ),
    ActivityType.quick_mood.value: MoodEntryCounter(),
    ActivityType.mindfulness.value: ActivityCompletionCounter(),
    ActivityType.breathing.value: ActivityCompletionCounter(BREATHING_PREFIX),
}


def register_counter(activity_type: str, counter: ActivityCounter) -> None:
    """Route `activity_type` to `counter` (replaces any existing route)."""
    _COUNTERS[enum_value(activity_type)] = counter


def get_counter(activity_type) -> ActivityCounter:
    try:
        return _COUNTERS[enum_value(activity_type)]
    except KeyError:
        raise ValidationError(
            f"Unknown activity_type: {enum_value(activity_type)}", field="activity_type"
        ) from None


def count_qualifying_activities(
    db: Session,
    user_id: int,
    activity_type,
    window: TimeWindow,
) -> int:
    """Records of `activity_type` owned by `user_id` with timestamp in [start, end)."""
    return get_counter(activity_type).count(db, user_id, window)
