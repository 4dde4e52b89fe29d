"""
Quick mood and mindfulness activity schemas.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class MoodEntryCreateRequest(BaseModel):
    sentiment_score: Optional[float] = Field(default=None, description="-1 – 1.", examples=[0.4])
    sentiment_label: Optional[str] = Field(default=None, examples=["positive"])
    check_in_date: Optional[date] = Field(
        default=None, description="Defaults to today (UTC).", examples=["2026-02-20"]
    )


class MoodEntryResponse(BaseModel):
    id: int
    sentiment_score: float
    sentiment_label: str
    check_in_date: str
    created_at: str


class MoodEntryListResponse(BaseModel):
    total: int
    items: list[MoodEntryResponse]


class MoodStatsResponse(BaseModel):
    total_entries: int
    average_score: Optional[float] = None
    sentiment_distribution: dict[str, int]
    trend: Optional[str] = Field(default=None, description='"improving" | "declining" | "stable"')


class ActivityCreateRequest(BaseModel):
    activity_id: Optional[str] = Field(
        default=None,
        description='Category prefix matters: "breathing_…", "journaling_…".',
        examples=["breathing_box_4x4"],
    )
    duration_seconds: Optional[int] = Field(default=None, ge=0, examples=[240])


class ActivityResponse(BaseModel):
    id: int
    activity_id: str
    duration_seconds: Optional[int] = None
    completed_at: str


class ActivityListResponse(BaseModel):
    total: int
    items: list[ActivityResponse]
