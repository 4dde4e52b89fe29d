"""
Domain events: in-process outbox between state transitions and side effects.

The goal lifecycle and badge evaluation publish events *after* their own
commit; notification delivery and follow-up badge checks subscribe to them.
A failing listener is logged and never undoes the transition that published
the event.

Event types
-----------
  goal.created     payload: goal_id, title, activity_type
  goal.completed   payload: goal_id, title, source ("manual" | "activity" | "sweep")
  goal.expiring    payload: goal_id, title, current, target, percent_complete, hours_remaining
  goal.expired     payload: goal_id, title, current, target, percent_complete
  badge.unlocked   payload: badge_id, name, description
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from mindwell.core.timeutils import utcnow

logger = logging.getLogger(__name__)


class EventType:
    GOAL_CREATED   = "goal.created"
    GOAL_COMPLETED = "goal.completed"
    GOAL_EXPIRING  = "goal.expiring"
    GOAL_EXPIRED   = "goal.expired"
    BADGE_UNLOCKED = "badge.unlocked"


@dataclass
class DomainEvent:
    event_type: str
    user_id: int
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


Handler = Callable[[Session, DomainEvent], None]


class EventBus:
    """Synchronous fan-out to subscribed handlers, isolated per handler."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def handlers(self, event_type: str) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    def publish(self, db: Session, event: DomainEvent) -> int:
        """Deliver `event` to every handler. Returns the number that failed."""
        failed = 0
        for handler in self.handlers(event.event_type):
            try:
                handler(db, event)
            except Exception:
                failed += 1
                logger.exception(
                    "Listener %s failed for %s (user %s)",
                    getattr(handler, "__name__", handler), event.event_type, event.user_id,
                )
                db.rollback()
        return failed

    def publish_all(self, db: Session, events: list[DomainEvent]) -> int:
        return sum(self.publish(db, ev) for ev in events)


event_bus = EventBus()
