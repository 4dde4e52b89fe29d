"""
Check-in service: the free-text store.

A check-in is written once with its structured inputs and optional note.
Analysis is attached afterwards (inline with auto_analyze, or on demand);
once a check-in carries an analysis its inputs are locked so the stored
analysis always describes the stored content.

Recording a check-in is also a goal activity: check_in goals are evaluated
after every check-in, journaling goals only when the note is non-empty.
Those evaluations run after the commit and never fail the request.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.core.errors import NotFoundError, RecordLockedError, ValidationError
from mindwell.core.timeutils import as_utc, utcnow
from mindwell.models.checkin import CheckinResponse, Emotion, MoodRating
from mindwell.models.goal import ActivityType
from mindwell.services.goals import record_goal_activity
from mindwell.services.llm_client import ClassifierClient
from mindwell.services.sentiment import (
    RiskAnalysis,
    aggregate_analyses,
    analyze_checkin,
    sanitize_analysis,
)

logger = logging.getLogger(__name__)

STRESS_MIN = 1
STRESS_MAX = 10

VALID_MOODS = [m.value for m in MoodRating]
VALID_EMOTIONS = [e.value for e in Emotion]

CRISIS_ALERT = {
    "type": "crisis",
    "message": (
        "We noticed some concerning content. Please reach out to a crisis "
        "helpline if you need support."
    ),
}


@dataclass
class CheckinDraft:
    mood_rating: Optional[str] = None
    stress_level: Optional[Any] = None
    selected_emotions: list[str] = field(default_factory=list)
    check_in_text: str = ""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _clean_mood(value: Any) -> str:
    if value is None or enum_value(value) not in VALID_MOODS:
        raise ValidationError(
            f"mood_rating must be one of: {', '.join(VALID_MOODS)}",
            field="mood_rating",
        )
    return enum_value(value)


def _clean_stress(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("stress_level must be an integer", field="stress_level")
    if not STRESS_MIN <= value <= STRESS_MAX:
        raise ValidationError(
            f"stress_level must be between {STRESS_MIN} and {STRESS_MAX}",
            field="stress_level",
        )
    return value


def _clean_emotions(values: Optional[list]) -> list[str]:
    # Unknown tags are dropped, not rejected.
    cleaned: list[str] = []
    for v in values or []:
        tag = enum_value(v)
        if tag in VALID_EMOTIONS and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def crisis_alert(analysis: Optional[dict]) -> Optional[dict]:
    if analysis and analysis.get("requires_immediate_attention"):
        return dict(CRISIS_ALERT)
    return None


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def create_checkin(
    db: Session,
    user_id: int,
    draft: CheckinDraft,
    analysis: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> CheckinResponse:
    mood = _clean_mood(draft.mood_rating)
    stress = _clean_stress(draft.stress_level)
    emotions = _clean_emotions(draft.selected_emotions)
    text = draft.check_in_text or ""
    at = as_utc(now) if now is not None else utcnow()

    checkin = CheckinResponse(
        user_id=user_id,
        mood_rating=MoodRating(mood),
        stress_level=stress,
        selected_emotions=emotions,
        check_in_text=text,
        ai_analysis=analysis,
        created_at=at,
    )
    db.add(checkin)
    db.commit()
    db.refresh(checkin)
    logger.info("Check-in %s created for user %s", checkin.id, user_id)

    activity_types = [ActivityType.check_in]
    if text.strip():
        activity_types.append(ActivityType.journaling)
    record_goal_activity(db, user_id, activity_types, at)
    return checkin


async def create_checkin_with_analysis(
    db: Session,
    user_id: int,
    draft: CheckinDraft,
    client: Optional[ClassifierClient] = None,
    now: Optional[datetime] = None,
) -> CheckinResponse:
    """
    Validate, analyse, then store in one write. Analysis failure is logged
    and the check-in is stored without one.
    """
    mood = _clean_mood(draft.mood_rating)
    stress = _clean_stress(draft.stress_level)
    emotions = _clean_emotions(draft.selected_emotions)

    analysis: Optional[dict] = None
    try:
        result = await analyze_checkin(draft.check_in_text, mood, stress, emotions, client)
        analysis = result.to_dict()
    except Exception:
        logger.exception("Auto-analysis failed for user %s", user_id)

    return create_checkin(db, user_id, draft, analysis=analysis, now=now)


def get_checkin(db: Session, user_id: int, checkin_id: int) -> CheckinResponse:
    checkin = (
        db.query(CheckinResponse)
        .filter(CheckinResponse.id == checkin_id, CheckinResponse.user_id == user_id)
        .first()
    )
    if checkin is None:
        raise NotFoundError("Check-in", checkin_id)
    return checkin


def list_checkins(
    db: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 30,
    offset: int = 0,
) -> tuple[int, list[CheckinResponse]]:
    q = db.query(CheckinResponse).filter(CheckinResponse.user_id == user_id)
    if start is not None:
        q = q.filter(CheckinResponse.created_at >= as_utc(start))
    if end is not None:
        q = q.filter(CheckinResponse.created_at <= as_utc(end))
    total = q.count()
    items = (
        q.order_by(CheckinResponse.created_at.desc(), CheckinResponse.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def update_checkin(
    db: Session,
    user_id: int,
    checkin_id: int,
    mood_rating: Optional[str] = None,
    stress_level: Optional[int] = None,
    selected_emotions: Optional[list] = None,
    check_in_text: Optional[str] = None,
) -> CheckinResponse:
    checkin = get_checkin(db, user_id, checkin_id)

    changes: dict[str, Any] = {}
    if mood_rating is not None:
        changes["mood_rating"] = MoodRating(_clean_mood(mood_rating))
    if stress_level is not None:
        changes["stress_level"] = _clean_stress(stress_level)
    if selected_emotions is not None:
        changes["selected_emotions"] = _clean_emotions(selected_emotions)
    if check_in_text is not None:
        changes["check_in_text"] = check_in_text
    if not changes:
        raise ValidationError("No fields to update")

    if checkin.ai_analysis is not None:
        raise RecordLockedError(
            "Check-in", checkin_id,
            "Check-in has already been analysed and can no longer be edited.",
        )

    for key, value in changes.items():
        setattr(checkin, key, value)
    db.commit()
    db.refresh(checkin)
    return checkin


def delete_checkin(db: Session, user_id: int, checkin_id: int) -> None:
    checkin = get_checkin(db, user_id, checkin_id)
    db.delete(checkin)
    db.commit()


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def attach_analysis(
    db: Session,
    user_id: int,
    checkin_id: int,
    analysis: dict,
) -> CheckinResponse:
    """Store an externally produced analysis after validating every field."""
    if not isinstance(analysis, dict) or not analysis:
        raise ValidationError("ai_analysis is required", field="ai_analysis")
    checkin = get_checkin(db, user_id, checkin_id)
    cleaned = sanitize_analysis(analysis)
    if cleaned.is_crisis:
        cleaned.requires_immediate_attention = True
    checkin.ai_analysis = cleaned.to_dict()
    db.commit()
    db.refresh(checkin)
    return checkin


async def analyze_existing(
    db: Session,
    user_id: int,
    checkin_id: int,
    client: Optional[ClassifierClient] = None,
) -> tuple[CheckinResponse, RiskAnalysis]:
    """(Re)analyse a stored check-in and overwrite its analysis."""
    checkin = get_checkin(db, user_id, checkin_id)
    analysis = await analyze_checkin(
        checkin.check_in_text,
        enum_value(checkin.mood_rating),
        checkin.stress_level,
        list(checkin.selected_emotions or []),
        client,
    )
    checkin.ai_analysis = analysis.to_dict()
    db.commit()
    db.refresh(checkin)
    return checkin, analysis


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def get_checkin_stats(
    db: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    q = db.query(CheckinResponse).filter(CheckinResponse.user_id == user_id)
    if start is not None:
        q = q.filter(CheckinResponse.created_at >= as_utc(start))
    if end is not None:
        q = q.filter(CheckinResponse.created_at <= as_utc(end))
    rows = q.all()

    analyses = [r.ai_analysis for r in rows if r.ai_analysis]
    sentiments = Counter(a.get("sentiment") for a in analyses if a.get("sentiment"))
    risks = Counter(a.get("risk_level") for a in analyses if a.get("risk_level"))
    moods = Counter(enum_value(r.mood_rating) for r in rows)
    emotions = Counter(e for r in rows for e in (r.selected_emotions or []))
    keywords = Counter(k for a in analyses for k in (a.get("keywords") or []))

    avg_stress = 0.0
    if rows:
        avg_stress = round(sum(r.stress_level for r in rows) / len(rows), 1)

    return {
        "total_checkins": len(rows),
        "sentiment_distribution": dict(sentiments),
        "risk_level_distribution": dict(risks),
        "mood_distribution": dict(moods),
        "emotion_distribution": dict(emotions),
        "average_stress_level": avg_stress,
        "top_keywords": [
            {"keyword": k, "count": c} for k, c in keywords.most_common(10)
        ],
        "analysis_summary": aggregate_analyses(analyses),
    }
