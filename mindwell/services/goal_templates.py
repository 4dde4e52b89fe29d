"""
Goal template catalogue: one-tap presets for goal creation.

Static data; a template only pre-fills a goal draft and every field can be
overridden by the request.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class GoalTemplate:
    id: str
    title: str
    description: str
    activity_type: str
    target_count: int
    time_frame: str
    category: str

    def to_dict(self) -> dict:
        return asdict(self)


GOAL_TEMPLATES: list[GoalTemplate] = [
    GoalTemplate("daily_checkin", "Daily Check-in", "Check in with yourself every day",
                 "check_in", 1, "daily", "consistency"),
    GoalTemplate("weekly_checkins", "5 Check-ins a Week", "Check in on most days of the week",
                 "check_in", 5, "weekly", "consistency"),
    GoalTemplate("mood_twice_daily", "Morning & Evening Mood", "Log your mood twice a day",
                 "quick_mood", 2, "daily", "awareness"),
    GoalTemplate("mood_weekly", "Mood Awareness", "Log your mood 10 times this week",
                 "quick_mood", 10, "weekly", "awareness"),
    GoalTemplate("daily_breathing", "Daily Breather", "One breathing exercise every day",
                 "breathing", 1, "daily", "stress_relief"),
    GoalTemplate("breathing_weekly", "Calm Week", "Seven breathing exercises this week",
                 "breathing", 7, "weekly", "stress_relief"),
    GoalTemplate("mindful_weekly", "Mindful Moments", "Three mindfulness activities a week",
                 "mindfulness", 3, "weekly", "mindfulness"),
    GoalTemplate("mindful_monthly", "Mindful Month", "Twenty mindfulness activities this month",
                 "mindfulness", 20, "monthly", "mindfulness"),
    GoalTemplate("journal_weekly", "Weekly Journaling", "Write in your journal three times a week",
                 "journaling", 3, "weekly", "reflection"),
    GoalTemplate("journal_monthly", "Reflective Month", "Write fifteen journal entries this month",
                 "journaling", 15, "monthly", "reflection"),
]

_BY_ID = {t.id: t for t in GOAL_TEMPLATES}


def get_template(template_id: str) -> Optional[GoalTemplate]:
    return _BY_ID.get(template_id)


def list_templates(
    category: Optional[str] = None,
    activity_type: Optional[str] = None,
) -> list[GoalTemplate]:
    templates = GOAL_TEMPLATES
    if category:
        templates = [t for t in templates if t.category == category]
    if activity_type:
        templates = [t for t in templates if t.activity_type == activity_type]
    return templates
