"""
Notification dispatch.

Delivery itself (FCM / APNs) belongs to an external dispatcher; this module
decides whether a user wants a message, hands it to the configured
`NotificationDispatcher`, and records the attempt in `notification_log`.
Dispatch is fire-and-forget: a dispatcher error is logged and recorded,
never raised to the caller, and never retried.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.orm import Session

from mindwell.models.notification_log import NotificationLog
from mindwell.models.user import User

logger = logging.getLogger(__name__)


class NotificationType:
    GOAL_ACHIEVED   = "goal_achieved"
    GOAL_EXPIRING   = "goal_expiring"
    GOAL_INCOMPLETE = "goal_incomplete"
    BADGE_UNLOCKED  = "badge_unlocked"


class DeliveryStatus:
    SENT    = "sent"
    FAILED  = "failed"
    SKIPPED = "skipped"


# notification type -> User opt-in column (types without an entry always send)
_PREFERENCE_FIELDS = {
    NotificationType.GOAL_ACHIEVED: "goal_notify_achieved",
    NotificationType.GOAL_EXPIRING: "goal_notify_expiring",
    NotificationType.GOAL_INCOMPLETE: "goal_notify_incomplete",
}

PREFERENCE_FIELDS = tuple(_PREFERENCE_FIELDS.values())


# ---------------------------------------------------------------------------
# Dispatchers
# ---------------------------------------------------------------------------

class NotificationDispatcher(ABC):
    """Delivers one message to every device of a user."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def send(self, user_id: int, title: str, body: str, data: dict[str, Any]) -> None:
        """Deliver or raise. Return value is ignored."""
        ...


class LoggingDispatcher(NotificationDispatcher):
    """Default dispatcher: writes the message to the application log."""

    @property
    def name(self) -> str:
        return "log"

    def send(self, user_id: int, title: str, body: str, data: dict[str, Any]) -> None:
        logger.info("Notify user %s: %s: %s %s", user_id, title, body, data)


_dispatcher: NotificationDispatcher = LoggingDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> NotificationDispatcher:
    """Swap the process-wide dispatcher. Returns the previous one."""
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher
    return previous


# ---------------------------------------------------------------------------
# Public: send
# ---------------------------------------------------------------------------

def _wants(user: Optional[User], notification_type: str) -> bool:
    if user is None:
        return False
    pref = _PREFERENCE_FIELDS.get(notification_type)
    return pref is None or bool(getattr(user, pref))


def send_to_user(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    body: str,
    data: Optional[dict[str, Any]] = None,
) -> str:
    """
    Honour the user's opt-ins, dispatch, and log the attempt.
    Returns the DeliveryStatus recorded.
    """
    payload = {"type": notification_type, **(data or {})}
    user = db.get(User, user_id)
    error: Optional[str] = None

    if not _wants(user, notification_type):
        status = DeliveryStatus.SKIPPED
    else:
        try:
            _dispatcher.send(user_id, title, body, payload)
            status = DeliveryStatus.SENT
        except Exception as exc:
            logger.error(
                "Dispatcher %s failed for user %s (%s): %s",
                _dispatcher.name, user_id, notification_type, exc,
            )
            status = DeliveryStatus.FAILED
            error = str(exc)

    if user is not None:
        db.add(NotificationLog(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            data=json.dumps(payload, default=str),
            status=status,
            error=error,
        ))
        db.commit()
    return status


# ---------------------------------------------------------------------------
# Public: query / preferences
# ---------------------------------------------------------------------------

def get_notifications(
    db: Session,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[NotificationLog]]:
    """Return (total, page) of a user's notification log, newest first."""
    q = db.query(NotificationLog).filter(NotificationLog.user_id == user_id)
    total = q.count()
    items = (
        q.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def update_preferences(db: Session, user: User, changes: dict[str, bool]) -> User:
    for field_name, value in changes.items():
        if field_name in PREFERENCE_FIELDS and value is not None:
            setattr(user, field_name, bool(value))
    db.commit()
    db.refresh(user)
    return user
