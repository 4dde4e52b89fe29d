"""
Goal request / response schemas.

Field ranges are enforced by the service layer so that HTTP and internal
callers get the same ValidationError; the models here only shape the JSON.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GoalCreateRequest(BaseModel):
    """Create a goal from scratch or from a template (explicit fields win)."""
    title: Optional[str] = Field(default=None, examples=["Daily Check-in"])
    activity_type: Optional[str] = Field(
        default=None,
        description='"check_in" | "quick_mood" | "mindfulness" | "breathing" | "journaling"',
        examples=["check_in"],
    )
    target_count: Optional[int] = Field(default=None, description="1 – 100.", examples=[5])
    time_frame: Optional[str] = Field(
        default=None, description='"daily" | "weekly" | "monthly"', examples=["weekly"]
    )
    template_id: Optional[str] = Field(default=None, examples=["weekly_checkins"])


class GoalUpdateRequest(BaseModel):
    """activity_type cannot be changed after creation."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    target_count: Optional[int] = None
    time_frame: Optional[str] = None


class ProgressResponse(BaseModel):
    current: int
    target: int
    percent_complete: int = Field(description="0 – 100, capped.")
    window_start: str
    window_end: str


class TimeRemainingResponse(BaseModel):
    end_date: str
    hours_remaining: int
    days_remaining: int


class GoalResponse(BaseModel):
    id: int
    title: str
    activity_type: str
    target_count: int
    time_frame: str
    is_active: bool
    completed_at: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None
    progress: Optional[ProgressResponse] = None
    progress_error: Optional[str] = Field(
        default=None,
        description="Set instead of `progress` when the activity store could not be read.",
    )
    time_remaining: Optional[TimeRemainingResponse] = None


class GoalListResponse(BaseModel):
    total: int
    max_active: int
    items: list[GoalResponse]


class GoalHistoryResponse(BaseModel):
    total: int
    items: list[GoalResponse]


class DeleteHistoryResponse(BaseModel):
    deleted: int


class GoalSummaryResponse(BaseModel):
    active_goals: int
    completed_goals: int
    abandoned_goals: int
    total_goals: int
    overall_progress: int
    max_allowed: int
    slots_remaining: int


class GoalTemplateResponse(BaseModel):
    id: str
    title: str
    description: str
    activity_type: str
    target_count: int
    time_frame: str
    category: str


class GoalTemplateListResponse(BaseModel):
    total: int
    items: list[GoalTemplateResponse]
