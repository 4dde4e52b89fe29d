"""
Periodic goal sweeps (run by the scheduler, never by request traffic).

  check_expiring_goals : goals whose period ends within 24 h and are not yet
                          met → goal.expiring event (reminder notification)
  expire_goals         : goals whose period has closed → completed if met,
                          otherwise deactivated + goal.expired event
  cleanup_goal_history : hard-delete inactive goals past the retention window

Each goal is processed and committed on its own: a failure is logged, counted
in the SweepResult, and the sweep moves on to the next goal.

Single-instance assumption: nothing here takes a distributed lock. Two
processes sweeping at the same time may send duplicate notifications.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from mindwell.core.timeutils import as_utc, utcnow
from mindwell.models.goal import Goal
from mindwell.services.events import DomainEvent, EventType, event_bus
from mindwell.services.goal_progress import calculate_progress, goal_period

logger = logging.getLogger(__name__)

EXPIRING_WINDOW_HOURS = 24


@dataclass
class SweepResult:
    examined: int = 0
    completed: int = 0
    deactivated: int = 0
    notified: int = 0
    failed: int = 0


def _open_goals(db: Session) -> list[Goal]:
    return (
        db.query(Goal)
        .filter(Goal.is_active.is_(True), Goal.completed_at.is_(None))
        .order_by(Goal.id)
        .all()
    )


def check_expiring_goals(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """Emit goal.expiring for unmet goals whose period ends in the next 24 h."""
    at = as_utc(now) if now is not None else utcnow()
    result = SweepResult()
    logger.info("Checking for expiring goals...")

    for goal in _open_goals(db):
        result.examined += 1
        try:
            period = goal_period(goal)
            hours_remaining = (period.end - at).total_seconds() / 3600
            if not 0 < hours_remaining <= EXPIRING_WINDOW_HOURS:
                continue

            progress = calculate_progress(db, goal, window=period)
            if progress.percent_complete >= 100:
                continue

            event_bus.publish(db, DomainEvent(
                event_type=EventType.GOAL_EXPIRING,
                user_id=goal.user_id,
                payload={
                    "goal_id": goal.id,
                    "title": goal.title,
                    "current": progress.current,
                    "target": progress.target,
                    "percent_complete": progress.percent_complete,
                    "hours_remaining": round(hours_remaining),
                },
            ))
            result.notified += 1
        except Exception:
            result.failed += 1
            logger.exception("Expiring check failed for goal %s", goal.id)
            db.rollback()

    logger.info("Sent %s expiring goal notifications", result.notified)
    return result


def expire_goals(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """
    Close every goal whose period has ended: met → completed, unmet →
    deactivated (abandoned) with a goal.expired event.
    """
    at = as_utc(now) if now is not None else utcnow()
    result = SweepResult()
    logger.info("Checking for incomplete goals...")

    for goal in _open_goals(db):
        result.examined += 1
        try:
            period = goal_period(goal)
            if period.end > at:
                continue

            progress = calculate_progress(db, goal, window=period)
            goal.is_active = False
            if progress.current >= progress.target:
                goal.completed_at = at
                event = DomainEvent(
                    event_type=EventType.GOAL_COMPLETED,
                    user_id=goal.user_id,
                    payload={"goal_id": goal.id, "title": goal.title, "source": "sweep"},
                )
            else:
                event = DomainEvent(
                    event_type=EventType.GOAL_EXPIRED,
                    user_id=goal.user_id,
                    payload={
                        "goal_id": goal.id,
                        "title": goal.title,
                        "current": progress.current,
                        "target": progress.target,
                        "percent_complete": progress.percent_complete,
                    },
                )
            db.commit()

            if goal.completed_at is not None:
                result.completed += 1
            else:
                result.deactivated += 1
            event_bus.publish(db, event)
        except Exception:
            result.failed += 1
            logger.exception("Expiry sweep failed for goal %s", goal.id)
            db.rollback()

    logger.info(
        "Deactivated %s expired goals, completed %s, %s failures",
        result.deactivated, result.completed, result.failed,
    )
    return result


def cleanup_goal_history(
    db: Session,
    retention_days: int,
    now: Optional[datetime] = None,
) -> int:
    """Delete inactive goals (all users) last changed more than retention_days ago."""
    at = as_utc(now) if now is not None else utcnow()
    cutoff = at - timedelta(days=retention_days)
    deleted = (
        db.query(Goal)
        .filter(Goal.is_active.is_(False), Goal.updated_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Deleted %s goals older than %s days from history", deleted, retention_days)
    return deleted
