"""
Notification log and preference schemas.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    id: int
    notification_type: str
    title: str
    body: str
    data: Optional[dict[str, Any]] = None
    status: str
    error: Optional[str] = None
    created_at: str


class NotificationListResponse(BaseModel):
    total: int
    items: list[NotificationResponse]


class PreferencesUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    goal_notify_achieved: Optional[bool] = None
    goal_notify_expiring: Optional[bool] = None
    goal_notify_incomplete: Optional[bool] = None


class PreferencesResponse(BaseModel):
    goal_notify_achieved: bool
    goal_notify_expiring: bool
    goal_notify_incomplete: bool
