"""
Goal lifecycle.

States
------
  active ──complete──▶ completed   (completed_at set, is_active False; terminal)
  active ──abandon───▶ inactive    (is_active False, completed_at null; terminal)

The scheduled expiry sweep drives the same two transitions for goals whose
period has closed; see mindwell.services.goal_sweeps.

Rules
-----
  * at most MAX_ACTIVE_GOALS active goals per user
  * title 1–50 chars, target_count 1–100, fixed activity types and time frames
  * activity_type is immutable after creation
  * every validation error is raised before anything is written

Transitions commit first and then publish goal.* events; listener failures
never roll a transition back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.core.errors import (
    CapacityExceededError,
    DataUnavailableError,
    InvalidGoalStateError,
    NotFoundError,
    NotYetAchievedError,
    ValidationError,
)
from mindwell.core.timeutils import as_utc, utcnow
from mindwell.models.goal import ActivityType, Goal, TimeFrame
from mindwell.services.events import DomainEvent, EventType, event_bus
from mindwell.services.goal_progress import (
    calculate_progress,
    calculate_progress_for_goals,
    time_window_including,
)
from mindwell.services.goal_templates import get_template

logger = logging.getLogger(__name__)

MAX_ACTIVE_GOALS = 10
TITLE_MAX_LENGTH = 50
TARGET_MIN = 1
TARGET_MAX = 100

VALID_ACTIVITY_TYPES = [a.value for a in ActivityType]
VALID_TIME_FRAMES = [t.value for t in TimeFrame]


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------

@dataclass
class GoalDraft:
    """Lightweight DTO so the service layer stays schema-agnostic."""
    title: Optional[str] = None
    activity_type: Optional[str] = None
    target_count: Optional[Any] = None
    time_frame: Optional[str] = None
    template_id: Optional[str] = None


@dataclass
class GoalsSummary:
    active_goals: int
    completed_goals: int
    abandoned_goals: int
    total_goals: int
    overall_progress: int
    max_allowed: int
    slots_remaining: int


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _clean_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required", field="title")
    cleaned = title.strip()
    if len(cleaned) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be {TITLE_MAX_LENGTH} characters or less", field="title"
        )
    return cleaned


def _clean_activity_type(value: Any) -> str:
    if value is None or enum_value(value) not in VALID_ACTIVITY_TYPES:
        raise ValidationError(
            f"activity_type must be one of: {', '.join(VALID_ACTIVITY_TYPES)}",
            field="activity_type",
        )
    return enum_value(value)


def _clean_time_frame(value: Any) -> str:
    if value is None or enum_value(value) not in VALID_TIME_FRAMES:
        raise ValidationError(
            f"time_frame must be one of: {', '.join(VALID_TIME_FRAMES)}",
            field="time_frame",
        )
    return enum_value(value)


def _clean_target(value: Any) -> int:
    message = f"target_count must be a number between {TARGET_MIN} and {TARGET_MAX}"
    if value is None or isinstance(value, bool):
        raise ValidationError(message, field="target_count")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message, field="target_count") from None
    if number < TARGET_MIN or number > TARGET_MAX:
        raise ValidationError(message, field="target_count")
    return number


def _apply_template(draft: GoalDraft) -> GoalDraft:
    if not draft.template_id:
        return draft
    template = get_template(draft.template_id)
    if template is None:
        raise ValidationError(f"Invalid template_id: {draft.template_id}", field="template_id")
    return GoalDraft(
        title=draft.title if draft.title is not None else template.title,
        activity_type=(
            draft.activity_type if draft.activity_type is not None else template.activity_type
        ),
        target_count=(
            draft.target_count if draft.target_count is not None else template.target_count
        ),
        time_frame=draft.time_frame if draft.time_frame is not None else template.time_frame,
        template_id=draft.template_id,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def count_active_goals(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(Goal.id))
        .filter(Goal.user_id == user_id, Goal.is_active.is_(True))
        .scalar()
        or 0
    )


def get_goal(db: Session, user_id: int, goal_id: int) -> Goal:
    goal = (
        db.query(Goal)
        .filter(Goal.id == goal_id, Goal.user_id == user_id)
        .first()
    )
    if goal is None:
        raise NotFoundError("Goal", goal_id)
    return goal


def list_active_goals(db: Session, user_id: int) -> list[Goal]:
    return (
        db.query(Goal)
        .filter(Goal.user_id == user_id, Goal.is_active.is_(True))
        .order_by(Goal.created_at.desc(), Goal.id.desc())
        .all()
    )


def get_goal_history(
    db: Session,
    user_id: int,
    completed_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Goal]]:
    """Return (total, page) of inactive goals, most recently changed first."""
    q = db.query(Goal).filter(Goal.user_id == user_id, Goal.is_active.is_(False))
    if completed_only:
        q = q.filter(Goal.completed_at.isnot(None))
    total = q.count()
    items = (
        q.order_by(Goal.updated_at.desc(), Goal.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _completed_event(goal: Goal, source: str) -> DomainEvent:
    return DomainEvent(
        event_type=EventType.GOAL_COMPLETED,
        user_id=goal.user_id,
        payload={"goal_id": goal.id, "title": goal.title, "source": source},
    )


def create_goal(
    db: Session,
    user_id: int,
    draft: GoalDraft,
    now: Optional[datetime] = None,
) -> Goal:
    """Validate, enforce the active-goal cap, persist, publish goal.created."""
    draft = _apply_template(draft)
    title = _clean_title(draft.title)
    activity_type = _clean_activity_type(draft.activity_type)
    target_count = _clean_target(draft.target_count)
    time_frame = _clean_time_frame(draft.time_frame)

    if count_active_goals(db, user_id) >= MAX_ACTIVE_GOALS:
        raise CapacityExceededError(max_active=MAX_ACTIVE_GOALS)

    goal = Goal(
        user_id=user_id,
        title=title,
        activity_type=ActivityType(activity_type),
        target_count=target_count,
        time_frame=TimeFrame(time_frame),
        is_active=True,
        created_at=as_utc(now) if now is not None else utcnow(),
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info("Goal %s created for user %s (%s x%s %s)",
                goal.id, user_id, activity_type, target_count, time_frame)

    event_bus.publish(db, DomainEvent(
        event_type=EventType.GOAL_CREATED,
        user_id=user_id,
        payload={"goal_id": goal.id, "title": goal.title, "activity_type": activity_type},
    ))
    return goal


def update_goal(
    db: Session,
    user_id: int,
    goal_id: int,
    title: Optional[str] = None,
    target_count: Optional[Any] = None,
    time_frame: Optional[str] = None,
) -> Goal:
    """Only title, target_count and time_frame may change, and only while active."""
    goal = get_goal(db, user_id, goal_id)
    if not goal.is_active:
        raise InvalidGoalStateError(goal_id, "Cannot update inactive goals.")

    updates: dict[str, Any] = {}
    if title is not None:
        updates["title"] = _clean_title(title)
    if target_count is not None:
        updates["target_count"] = _clean_target(target_count)
    if time_frame is not None:
        updates["time_frame"] = TimeFrame(_clean_time_frame(time_frame))
    if not updates:
        raise ValidationError(
            "No valid fields to update. Allowed fields: title, target_count, time_frame"
        )

    for key, value in updates.items():
        setattr(goal, key, value)
    db.commit()
    db.refresh(goal)
    return goal


def abandon_goal(db: Session, user_id: int, goal_id: int) -> Goal:
    """Soft delete: is_active=False, completed_at stays null."""
    goal = get_goal(db, user_id, goal_id)
    if not goal.is_active:
        raise InvalidGoalStateError(goal_id, "Goal is not active.")
    goal.is_active = False
    db.commit()
    db.refresh(goal)
    logger.info("Goal %s abandoned by user %s", goal_id, user_id)
    return goal


def complete_goal(
    db: Session,
    user_id: int,
    goal_id: int,
    now: Optional[datetime] = None,
) -> Goal:
    """
    Mark an active goal complete. Progress is recomputed here; a goal short of
    its target raises NotYetAchievedError carrying that progress.
    """
    goal = get_goal(db, user_id, goal_id)
    if not goal.is_active:
        raise InvalidGoalStateError(goal_id, "Goal is not active.")
    if goal.completed_at is not None:
        raise InvalidGoalStateError(goal_id, "Goal is already completed.")

    at = as_utc(now) if now is not None else utcnow()
    progress = calculate_progress(db, goal, at)
    if progress.current < progress.target:
        raise NotYetAchievedError(goal_id, progress.to_dict())

    goal.completed_at = at
    goal.is_active = False
    db.commit()
    db.refresh(goal)
    logger.info("Goal %s completed by user %s", goal_id, user_id)

    event_bus.publish(db, _completed_event(goal, source="manual"))
    return goal


def check_goal_achieved(
    db: Session,
    user_id: int,
    activity_type,
    now: Optional[datetime] = None,
) -> list[Goal]:
    """
    Called after an activity is recorded at `now`. Completes every active goal
    of that activity type whose target is now met; the window always includes
    the record stamped at `now`. A goal whose progress cannot be read is
    skipped; the others are still evaluated.
    """
    at = as_utc(now) if now is not None else utcnow()
    goals = (
        db.query(Goal)
        .filter(
            Goal.user_id == user_id,
            Goal.activity_type == ActivityType(enum_value(activity_type)),
            Goal.is_active.is_(True),
            Goal.completed_at.is_(None),
        )
        .all()
    )

    completed: list[Goal] = []
    for goal in goals:
        try:
            with db.begin_nested():
                progress = calculate_progress(
                    db, goal, window=time_window_including(goal.time_frame, at)
                )
        except DataUnavailableError as exc:
            logger.warning("Skipping goal %s: %s", goal.id, exc.message)
            continue
        if progress.current >= progress.target:
            goal.completed_at = at
            goal.is_active = False
            completed.append(goal)

    if completed:
        db.commit()
        for goal in completed:
            logger.info("Goal achieved: %s for user %s", goal.id, user_id)
        event_bus.publish_all(db, [_completed_event(g, source="activity") for g in completed])
    return completed


def record_goal_activity(
    db: Session,
    user_id: int,
    activity_types: list[ActivityType],
    at: datetime,
) -> None:
    """
    Run check_goal_achieved for each activity type a record just written at
    `at` counts towards. Failures are logged and never reach the writer.
    """
    for activity_type in activity_types:
        try:
            check_goal_achieved(db, user_id, activity_type, at)
        except Exception:
            logger.exception(
                "Goal check failed for user %s (%s)", user_id, enum_value(activity_type)
            )
            db.rollback()


# ---------------------------------------------------------------------------
# History & summary
# ---------------------------------------------------------------------------

def delete_goal_history(
    db: Session,
    user_id: int,
    older_than_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Hard-delete inactive goals (optionally only those untouched for N days)."""
    q = db.query(Goal).filter(Goal.user_id == user_id, Goal.is_active.is_(False))
    if older_than_days is not None:
        at = as_utc(now) if now is not None else utcnow()
        q = q.filter(Goal.updated_at < at - timedelta(days=older_than_days))
    deleted = q.delete(synchronize_session=False)
    db.commit()
    return deleted


def get_goals_summary(
    db: Session,
    user_id: int,
    now: Optional[datetime] = None,
) -> GoalsSummary:
    active = list_active_goals(db, user_id)
    completed_count = (
        db.query(func.count(Goal.id))
        .filter(Goal.user_id == user_id, Goal.completed_at.isnot(None))
        .scalar()
        or 0
    )
    abandoned_count = (
        db.query(func.count(Goal.id))
        .filter(
            Goal.user_id == user_id,
            Goal.is_active.is_(False),
            Goal.completed_at.is_(None),
        )
        .scalar()
        or 0
    )

    overall = 0
    measured = [r.progress for r in calculate_progress_for_goals(db, active, now) if r.ok]
    if measured:
        overall = round(sum(p.percent_complete for p in measured) / len(measured))

    return GoalsSummary(
        active_goals=len(active),
        completed_goals=completed_count,
        abandoned_goals=abandoned_count,
        total_goals=len(active) + completed_count + abandoned_count,
        overall_progress=overall,
        max_allowed=MAX_ACTIVE_GOALS,
        slots_remaining=max(0, MAX_ACTIVE_GOALS - len(active)),
    )
