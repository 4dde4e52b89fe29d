"""
Structured activity store: quick mood entries and mindfulness completions.

Every write is a goal activity. A mood entry feeds quick_mood goals; a
completion feeds mindfulness goals plus breathing / journaling goals when
its activity_id carries the matching prefix.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy.orm import Session

from mindwell.core.errors import ValidationError
from mindwell.core.timeutils import as_utc, utcnow
from mindwell.models.activity import (
    ActivityCompletion,
    MoodEntry,
    BREATHING_PREFIX,
    JOURNALING_PREFIX,
)
from mindwell.models.goal import ActivityType
from mindwell.services.goals import record_goal_activity

logger = logging.getLogger(__name__)

LABEL_MAX_LENGTH = 32
ACTIVITY_ID_MAX_LENGTH = 64
MOOD_TREND_THRESHOLD = Decimal("0.1")


@dataclass
class MoodStats:
    total_entries: int
    average_score: Optional[float]
    sentiment_distribution: dict[str, int]
    trend: Optional[str]


def activity_types_for(activity_id: str) -> list[ActivityType]:
    """Goal activity types a completion with this id counts towards."""
    types = [ActivityType.mindfulness]
    if activity_id.startswith(BREATHING_PREFIX):
        types.append(ActivityType.breathing)
    if activity_id.startswith(JOURNALING_PREFIX):
        types.append(ActivityType.journaling)
    return types


# ---------------------------------------------------------------------------
# Mood entries
# ---------------------------------------------------------------------------

def _clean_score(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError("sentiment_score is required", field="sentiment_score")
    try:
        score = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("sentiment_score must be a number", field="sentiment_score")
    if not score.is_finite() or not Decimal("-1") <= score <= Decimal("1"):
        raise ValidationError(
            "sentiment_score must be between -1 and 1", field="sentiment_score"
        )
    return score.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _clean_label(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("sentiment_label is required", field="sentiment_label")
    label = value.strip()
    if len(label) > LABEL_MAX_LENGTH:
        raise ValidationError(
            f"sentiment_label must be at most {LABEL_MAX_LENGTH} characters",
            field="sentiment_label",
        )
    return label


def create_mood_entry(
    db: Session,
    user_id: int,
    sentiment_score: Any,
    sentiment_label: Any,
    check_in_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> MoodEntry:
    at = as_utc(now) if now is not None else utcnow()
    entry = MoodEntry(
        user_id=user_id,
        sentiment_score=_clean_score(sentiment_score),
        sentiment_label=_clean_label(sentiment_label),
        check_in_date=check_in_date or at.date(),
        created_at=at,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    record_goal_activity(db, user_id, [ActivityType.quick_mood], at)
    return entry


def list_mood_entries(
    db: Session,
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 30,
    offset: int = 0,
) -> tuple[int, list[MoodEntry]]:
    q = db.query(MoodEntry).filter(MoodEntry.user_id == user_id)
    if start_date is not None:
        q = q.filter(MoodEntry.check_in_date >= start_date)
    if end_date is not None:
        q = q.filter(MoodEntry.check_in_date <= end_date)
    total = q.count()
    items = (
        q.order_by(MoodEntry.check_in_date.desc(), MoodEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def get_mood_stats(
    db: Session,
    user_id: int,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> MoodStats:
    """
    Average score, label distribution and trend over the last `days` days
    (all entries when omitted). Trend compares the newer half of the entries
    with the older half: a difference above 0.1 is improving, below -0.1
    declining, otherwise stable.
    """
    q = db.query(MoodEntry).filter(MoodEntry.user_id == user_id)
    if days is not None:
        at = as_utc(now) if now is not None else utcnow()
        q = q.filter(MoodEntry.created_at >= at - timedelta(days=days))
    entries = q.order_by(MoodEntry.created_at.desc(), MoodEntry.id.desc()).all()

    if not entries:
        return MoodStats(0, None, {}, None)

    scores = [Decimal(e.sentiment_score) for e in entries]
    average = sum(scores) / len(scores)

    trend = None
    midpoint = len(scores) // 2
    newer, older = scores[:midpoint], scores[midpoint:]
    if newer and older:
        diff = sum(newer) / len(newer) - sum(older) / len(older)
        if diff > MOOD_TREND_THRESHOLD:
            trend = "improving"
        elif diff < -MOOD_TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"

    return MoodStats(
        total_entries=len(entries),
        average_score=float(average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        sentiment_distribution=dict(Counter(e.sentiment_label for e in entries)),
        trend=trend,
    )


# ---------------------------------------------------------------------------
# Activity completions
# ---------------------------------------------------------------------------

def record_activity(
    db: Session,
    user_id: int,
    activity_id: Any,
    duration_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ActivityCompletion:
    if not isinstance(activity_id, str) or not activity_id.strip():
        raise ValidationError("activity_id is required", field="activity_id")
    activity_id = activity_id.strip()
    if len(activity_id) > ACTIVITY_ID_MAX_LENGTH:
        raise ValidationError(
            f"activity_id must be at most {ACTIVITY_ID_MAX_LENGTH} characters",
            field="activity_id",
        )
    if duration_seconds is not None and (
        isinstance(duration_seconds, bool)
        or not isinstance(duration_seconds, int)
        or duration_seconds < 0
    ):
        raise ValidationError(
            "duration_seconds must be a non-negative integer", field="duration_seconds"
        )
    at = as_utc(now) if now is not None else utcnow()

    completion = ActivityCompletion(
        user_id=user_id,
        activity_id=activity_id,
        duration_seconds=duration_seconds,
        completed_at=at,
    )
    db.add(completion)
    db.commit()
    db.refresh(completion)
    logger.info("Activity %s recorded for user %s", activity_id, user_id)

    record_goal_activity(db, user_id, activity_types_for(activity_id), at)
    return completion


def list_activities(
    db: Session,
    user_id: int,
    prefix: Optional[str] = None,
    limit: int = 30,
    offset: int = 0,
) -> tuple[int, list[ActivityCompletion]]:
    q = db.query(ActivityCompletion).filter(ActivityCompletion.user_id == user_id)
    if prefix:
        q = q.filter(ActivityCompletion.activity_id.startswith(prefix, autoescape=True))
    total = q.count()
    items = (
        q.order_by(ActivityCompletion.completed_at.desc(), ActivityCompletion.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
