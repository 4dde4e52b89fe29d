"""
Event listeners: notifications and follow-up badge checks.

register_listeners(bus) wires every handler below; main.py and the
standalone scheduler both call it once at startup.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from mindwell.services.badges import evaluate_badges
from mindwell.services.events import DomainEvent, EventBus, EventType
from mindwell.services.notifications import NotificationType, send_to_user

logger = logging.getLogger(__name__)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def notify_goal_achieved(db: Session, event: DomainEvent) -> None:
    p = event.payload
    send_to_user(
        db, event.user_id, NotificationType.GOAL_ACHIEVED,
        title="Goal Achieved!",
        body=f'Congratulations! You completed "{p["title"]}"',
        data={"goal_id": p["goal_id"], "goal_title": p["title"]},
    )


def notify_goal_expiring(db: Session, event: DomainEvent) -> None:
    p = event.payload
    hours = p.get("hours_remaining", 0)
    send_to_user(
        db, event.user_id, NotificationType.GOAL_EXPIRING,
        title="Goal Expiring Soon",
        body=(
            f'"{p["title"]}" expires in {_plural(hours, "hour")}. '
            f'You\'re at {p["current"]}/{p["target"]}!'
        ),
        data={"goal_id": p["goal_id"], "goal_title": p["title"], "progress": p["percent_complete"]},
    )


def notify_goal_expired(db: Session, event: DomainEvent) -> None:
    p = event.payload
    send_to_user(
        db, event.user_id, NotificationType.GOAL_INCOMPLETE,
        title="Goal Expired",
        body=(
            f'"{p["title"]}" ended at {p["current"]}/{p["target"]}. '
            "Don't worry, you can try again!"
        ),
        data={"goal_id": p["goal_id"], "goal_title": p["title"], "progress": p["percent_complete"]},
    )


def notify_badge_unlocked(db: Session, event: DomainEvent) -> None:
    p = event.payload
    send_to_user(
        db, event.user_id, NotificationType.BADGE_UNLOCKED,
        title="Achievement Unlocked!",
        body=f'You earned the "{p["name"]}" badge. {p["description"]}',
        data={"badge_id": p["badge_id"]},
    )


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------

def check_goal_setter_badge(db: Session, event: DomainEvent) -> None:
    evaluate_badges(db, event.user_id, only=["goal_setter"])


def check_goal_achiever_badge(db: Session, event: DomainEvent) -> None:
    evaluate_badges(db, event.user_id, only=["goal_achiever"])


def register_listeners(bus: EventBus) -> None:
    bus.subscribe(EventType.GOAL_CREATED, check_goal_setter_badge)
    bus.subscribe(EventType.GOAL_COMPLETED, notify_goal_achieved)
    bus.subscribe(EventType.GOAL_COMPLETED, check_goal_achiever_badge)
    bus.subscribe(EventType.GOAL_EXPIRING, notify_goal_expiring)
    bus.subscribe(EventType.GOAL_EXPIRED, notify_goal_expired)
    bus.subscribe(EventType.BADGE_UNLOCKED, notify_badge_unlocked)
    logger.debug("Event listeners registered")
