"""
Goal Progress Engine.

Definition
----------
A goal asks for `target_count` activities of `activity_type` inside its time
window. Progress is recomputed from the activity stores on every read; it is
never cached on the goal row or maintained incrementally.

Time windows (all UTC)
----------------------
  daily  : midnight-to-midnight of the reference day
  weekly : trailing 7 days ending at the reference instant
  monthly: trailing 30 days ending at the reference instant

A goal's own period (used by the expiry sweeps) is anchored at its creation:
  daily  : the creation day
  weekly : [created_at, created_at + 7 days)
  monthly: [created_at, created_at + 30 days)

Public API
----------
time_window_for(time_frame, reference)         -> TimeWindow
time_window_including(time_frame, instant)      -> TimeWindow
goal_period(goal)                              -> TimeWindow
calculate_progress(db, goal, now, window)      -> Progress
is_goal_completed(db, goal, now)               -> bool
get_time_remaining(time_frame, now, anchor)    -> TimeRemaining
calculate_progress_for_goals(db, goals, now)   -> list[GoalProgress]
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.core.errors import DataUnavailableError, ValidationError
from mindwell.core.timeutils import as_utc, day_bounds, utcnow
from mindwell.models.goal import Goal, TimeFrame
from mindwell.services.activity_counters import TimeWindow, count_qualifying_activities

logger = logging.getLogger(__name__)

WEEKLY_DAYS = 7
MONTHLY_DAYS = 30

# Smallest step of a stored timestamp.
_RESOLUTION = timedelta(microseconds=1)

_TRAILING_DAYS = {
    TimeFrame.weekly.value: WEEKLY_DAYS,
    TimeFrame.monthly.value: MONTHLY_DAYS,
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Progress:
    current: int
    target: int
    percent_complete: int    # 0 – 100, capped
    window_start: datetime
    window_end: datetime

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["window_start"] = self.window_start.isoformat()
        d["window_end"] = self.window_end.isoformat()
        return d


@dataclass
class TimeRemaining:
    end_date: datetime
    hours_remaining: int
    days_remaining: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "end_date": self.end_date.isoformat(),
            "hours_remaining": self.hours_remaining,
            "days_remaining": self.days_remaining,
        }


@dataclass
class GoalProgress:
    """Outcome for one goal in a batch: progress on success, error otherwise."""
    goal: Goal
    progress: Optional[Progress] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def time_window_for(time_frame, reference: Optional[datetime] = None) -> TimeWindow:
    """Window a goal of `time_frame` is evaluated over at `reference`."""
    ref = as_utc(reference) if reference is not None else utcnow()
    frame = enum_value(time_frame)

    if frame == TimeFrame.daily.value:
        start, end = day_bounds(ref.date())
        return TimeWindow(start=start, end=end)
    if frame in _TRAILING_DAYS:
        return TimeWindow(start=ref - timedelta(days=_TRAILING_DAYS[frame]), end=ref)

    raise ValidationError(f"Unknown time_frame: {frame}", field="time_frame")


def time_window_including(time_frame, instant: datetime) -> TimeWindow:
    """
    Window at `instant` that also contains a record stamped at `instant`.
    Trailing windows end at their reference, so the end is nudged past it.
    """
    at = as_utc(instant)
    win = time_window_for(time_frame, at)
    if win.end > at:
        return win
    return TimeWindow(start=win.start, end=at + _RESOLUTION)


def goal_period(goal: Goal) -> TimeWindow:
    """The closed-ended period a goal was created for."""
    created = as_utc(goal.created_at)
    frame = enum_value(goal.time_frame)

    if frame == TimeFrame.daily.value:
        start, end = day_bounds(created.date())
        return TimeWindow(start=start, end=end)
    if frame in _TRAILING_DAYS:
        return TimeWindow(start=created, end=created + timedelta(days=_TRAILING_DAYS[frame]))

    raise ValidationError(f"Unknown time_frame: {frame}", field="time_frame")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def _percent(current: int, target: int) -> int:
    if target <= 0:
        return 100
    raw = Decimal(current) * 100 / Decimal(target)
    return int(min(Decimal(100), raw).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_progress(
    db: Session,
    goal: Goal,
    now: Optional[datetime] = None,
    window: Optional[TimeWindow] = None,
) -> Progress:
    """
    Count qualifying activities in the goal's current window (or `window`).
    Raises DataUnavailableError if the underlying store cannot be read.
    """
    win = window or time_window_for(goal.time_frame, now)
    current = count_qualifying_activities(db, goal.user_id, goal.activity_type, win)
    return Progress(
        current=current,
        target=goal.target_count,
        percent_complete=_percent(current, goal.target_count),
        window_start=win.start,
        window_end=win.end,
    )


def is_goal_completed(db: Session, goal: Goal, now: Optional[datetime] = None) -> bool:
    """current >= target, recomputed on every call."""
    progress = calculate_progress(db, goal, now)
    return progress.current >= progress.target


def get_time_remaining(
    time_frame,
    now: Optional[datetime] = None,
    anchor: Optional[datetime] = None,
) -> TimeRemaining:
    """
    Time left in the current window. With `anchor` (a goal's created_at) the
    end is that goal's own period deadline instead.
    """
    current = as_utc(now) if now is not None else utcnow()
    if anchor is not None:
        frame = enum_value(time_frame)
        created = as_utc(anchor)
        if frame == TimeFrame.daily.value:
            end = day_bounds(created.date())[1]
        elif frame in _TRAILING_DAYS:
            end = created + timedelta(days=_TRAILING_DAYS[frame])
        else:
            raise ValidationError(f"Unknown time_frame: {frame}", field="time_frame")
    else:
        end = time_window_for(time_frame, current).end

    seconds = max(0.0, (end - current).total_seconds())
    hours = int(seconds // 3600)
    return TimeRemaining(
        end_date=end,
        hours_remaining=hours,
        days_remaining=hours // 24,
    )


def calculate_progress_for_goals(
    db: Session,
    goals: list[Goal],
    now: Optional[datetime] = None,
) -> list[GoalProgress]:
    """
    Progress for each goal independently, in input order.
    A store failure on one goal is reported on that item only. Each count
    runs in its own savepoint so a failed query does not poison the
    transaction for the goals after it.
    """
    reference = as_utc(now) if now is not None else utcnow()
    results: list[GoalProgress] = []
    for goal in goals:
        try:
            with db.begin_nested():
                progress = calculate_progress(db, goal, reference)
            results.append(GoalProgress(goal=goal, progress=progress))
        except DataUnavailableError as exc:
            logger.warning("Progress unavailable for goal %s: %s", goal.id, exc.message)
            results.append(GoalProgress(goal=goal, error=exc.message))
    return results
