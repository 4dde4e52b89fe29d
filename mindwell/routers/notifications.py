"""
Notifications router.

GET /notifications             : notification log (paginated, newest first)
GET /notifications/preferences : current opt-ins
PUT /notifications/preferences : update opt-ins
"""
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mindwell.db.base import get_db
from mindwell.models.notification_log import NotificationLog
from mindwell.models.user import User
from mindwell.routers.deps import get_current_user
from mindwell.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    PreferencesResponse,
    PreferencesUpdateRequest,
)
from mindwell.services.notifications import get_notifications, update_preferences

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _parse_data(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _log_to_response(row: NotificationLog) -> NotificationResponse:
    return NotificationResponse(
        id=row.id,
        notification_type=row.notification_type,
        title=row.title,
        body=row.body,
        data=_parse_data(row.data),
        status=row.status,
        error=row.error,
        created_at=row.created_at.isoformat() if row.created_at else "",
    )


def _preferences(user: User) -> PreferencesResponse:
    return PreferencesResponse(
        goal_notify_achieved=user.goal_notify_achieved,
        goal_notify_expiring=user.goal_notify_expiring,
        goal_notify_incomplete=user.goal_notify_incomplete,
    )


@router.get("", response_model=NotificationListResponse, summary="Notification log")
def list_notifications(
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Every dispatch attempt, including skipped (opted out) and failed ones."""
    total, items = get_notifications(db, user.id, limit=limit, offset=offset)
    return NotificationListResponse(total=total, items=[_log_to_response(n) for n in items])


@router.get("/preferences", response_model=PreferencesResponse, summary="Notification opt-ins")
def get_preferences(user: User = Depends(get_current_user)):
    return _preferences(user)


@router.put(
    "/preferences",
    response_model=PreferencesResponse,
    summary="Update notification opt-ins",
)
def put_preferences(
    payload: PreferencesUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Omitted fields keep their current value."""
    user = update_preferences(db, user, payload.model_dump(exclude_none=True))
    return _preferences(user)
