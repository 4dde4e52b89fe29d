"""
Progress, streak, achievement and challenge schemas.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class TodayProgressResponse(BaseModel):
    has_checkin: bool
    has_mindfulness: bool
    has_quick_mood: bool
    completed_count: int
    total_goals: int


class StreaksResponse(BaseModel):
    checkin_streak: int
    mindfulness_streak: int
    quick_mood_streak: int
    overall_streak: int


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    unlocked: bool = False
    unlocked_at: Optional[str] = None


class AchievementsResponse(BaseModel):
    badges: list[BadgeResponse]
    unlocked_count: int
    total_count: int


class AchievementCheckResponse(BaseModel):
    newly_unlocked: list[BadgeResponse]
    already_unlocked: list[str]


class ChallengeResponse(BaseModel):
    id: str
    name: str
    description: str
    target: int
    type: str
    reward: str
    duration_days: int
    progress: int
    completed: bool
    percentage: int


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeResponse]
