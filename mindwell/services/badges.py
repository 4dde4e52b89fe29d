"""
Badge evaluation.

Each badge is a row in a fixed table: display data in BADGES, unlock rule in
BADGE_RULES (a predicate over BadgeStats). Evaluation gathers the aggregate
counts once, tests every badge the user does not have yet, and inserts the
winners.

Idempotency
-----------
Already-unlocked badges are skipped and never revoked. Before inserting,
the service checks whether the (user_id, badge_id) pair exists; the unique
constraint on user_achievements is the final guard when two evaluations race.
The losing insert is rolled back to its savepoint and treated as a no-op.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mindwell.core.timeutils import utcnow
from mindwell.models.achievement import UserAchievement
from mindwell.models.checkin import CheckinResponse
from mindwell.models.goal import ActivityType, Goal
from mindwell.services.activity_counters import get_counter
from mindwell.services.events import DomainEvent, EventType, event_bus
from mindwell.services.streaks import calculate_checkin_streak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    icon: str
    category: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
        }


@dataclass
class BadgeStats:
    """Cumulative usage counts the badge rules are evaluated against."""
    total_checkins: int = 0
    unique_days: int = 0
    checkin_streak: int = 0
    activity_count: int = 0
    breathing_count: int = 0
    mood_count: int = 0
    journal_words: int = 0
    goals_created: int = 0
    goals_completed: int = 0


@dataclass
class BadgeEvaluation:
    newly_unlocked: list[Badge] = field(default_factory=list)
    already_unlocked: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Badge table
# ---------------------------------------------------------------------------

BADGES: dict[str, Badge] = {
    b.id: b for b in [
        Badge("first_checkin", "First Steps", "Complete your first check-in", "star", "milestones"),
        Badge("week_one", "Week One", "Use the app for 7 days", "calendar", "milestones"),
        Badge("streak_7", "Week Warrior", "Maintain a 7-day check-in streak", "fire", "streaks"),
        Badge("streak_30", "Monthly Master", "Maintain a 30-day check-in streak", "trophy", "streaks"),
        Badge("mindful_5", "Mindful Beginner", "Complete 5 mindfulness activities", "leaf", "mindfulness"),
        Badge("mindful_30", "Zen Master", "Complete 30 mindfulness activities", "spa", "mindfulness"),
        Badge("breather_10", "Deep Breather", "Complete 10 breathing exercises", "wind", "mindfulness"),
        Badge("moods_20", "Mood Tracker", "Log 20 mood entries", "chart-line", "tracking"),
        Badge("words_500", "Journaler", "Write 500+ words in check-in notes", "pencil", "tracking"),
        Badge("goal_setter", "Goal Setter", "Created your first personal goal", "target", "goals"),
        Badge("goal_achiever", "Goal Achiever", "Completed your first personal goal", "ribbon", "goals"),
    ]
}

BADGE_RULES: dict[str, Callable[[BadgeStats], bool]] = {
    "first_checkin": lambda s: s.total_checkins >= 1,
    "week_one":      lambda s: s.unique_days >= 7,
    "streak_7":      lambda s: s.checkin_streak >= 7,
    "streak_30":     lambda s: s.checkin_streak >= 30,
    "mindful_5":     lambda s: s.activity_count >= 5,
    "mindful_30":    lambda s: s.activity_count >= 30,
    "breather_10":   lambda s: s.breathing_count >= 10,
    "moods_20":      lambda s: s.mood_count >= 20,
    "words_500":     lambda s: s.journal_words >= 500,
    "goal_setter":   lambda s: s.goals_created >= 1,
    "goal_achiever": lambda s: s.goals_completed >= 1,
}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def _journal_words(db: Session, user_id: int) -> int:
    rows = (
        db.query(CheckinResponse.check_in_text)
        .filter(CheckinResponse.user_id == user_id)
        .all()
    )
    return sum(len(text.split()) for (text,) in rows if text)


def gather_stats(db: Session, user_id: int, today: Optional[date] = None) -> BadgeStats:
    checkins = get_counter(ActivityType.check_in)
    moods = get_counter(ActivityType.quick_mood)
    activities = get_counter(ActivityType.mindfulness)

    days = (
        checkins.active_days(db, user_id)
        | moods.active_days(db, user_id)
        | activities.active_days(db, user_id)
    )
    goals_created = (
        db.query(func.count(Goal.id)).filter(Goal.user_id == user_id).scalar() or 0
    )
    goals_completed = (
        db.query(func.count(Goal.id))
        .filter(Goal.user_id == user_id, Goal.completed_at.isnot(None))
        .scalar()
        or 0
    )

    return BadgeStats(
        total_checkins=checkins.count(db, user_id),
        unique_days=len(days),
        checkin_streak=calculate_checkin_streak(db, user_id, today),
        activity_count=activities.count(db, user_id),
        breathing_count=get_counter(ActivityType.breathing).count(db, user_id),
        mood_count=moods.count(db, user_id),
        journal_words=_journal_words(db, user_id),
        goals_created=goals_created,
        goals_completed=goals_completed,
    )


# ---------------------------------------------------------------------------
# Unlocks
# ---------------------------------------------------------------------------

def unlocked_badges(db: Session, user_id: int) -> dict[str, datetime]:
    rows = db.query(UserAchievement).filter(UserAchievement.user_id == user_id).all()
    return {r.badge_id: r.unlocked_at for r in rows}


def has_badge(db: Session, user_id: int, badge_id: str) -> bool:
    return (
        db.query(UserAchievement.id)
        .filter(UserAchievement.user_id == user_id, UserAchievement.badge_id == badge_id)
        .first()
        is not None
    )


def award_badge(db: Session, user_id: int, badge_id: str) -> Optional[Badge]:
    """
    Insert the unlock row. Returns the Badge if newly awarded, None if the
    user already had it (including losing a concurrent race).
    Flushes inside a savepoint; the caller commits.
    """
    if has_badge(db, user_id, badge_id):
        return None

    savepoint = db.begin_nested()
    try:
        db.add(UserAchievement(user_id=user_id, badge_id=badge_id, unlocked_at=utcnow()))
        db.flush()
        savepoint.commit()
    except IntegrityError:
        # Another evaluation inserted first
        savepoint.rollback()
        return None

    logger.info("Awarded badge %s to user %s", badge_id, user_id)
    return BADGES.get(badge_id) or Badge(badge_id, badge_id, "", "", "")


def evaluate_badges(
    db: Session,
    user_id: int,
    today: Optional[date] = None,
    only: Optional[Iterable[str]] = None,
) -> BadgeEvaluation:
    """
    Evaluate every badge (or just `only`) for the user and unlock the earned
    ones. Commits once, then publishes one badge.unlocked event per unlock.
    """
    candidates = list(only) if only is not None else list(BADGES)
    existing = unlocked_badges(db, user_id)
    result = BadgeEvaluation()

    pending = []
    for badge_id in candidates:
        if badge_id in existing:
            result.already_unlocked.append(badge_id)
        elif badge_id in BADGE_RULES:
            pending.append(badge_id)
    if not pending:
        return result

    stats = gather_stats(db, user_id, today)
    for badge_id in pending:
        if not BADGE_RULES[badge_id](stats):
            continue
        badge = award_badge(db, user_id, badge_id)
        if badge is None:
            result.already_unlocked.append(badge_id)
        else:
            result.newly_unlocked.append(badge)

    if result.newly_unlocked:
        db.commit()
        event_bus.publish_all(db, [
            DomainEvent(
                event_type=EventType.BADGE_UNLOCKED,
                user_id=user_id,
                payload={"badge_id": b.id, "name": b.name, "description": b.description},
            )
            for b in result.newly_unlocked
        ])

    return result


def list_achievements(db: Session, user_id: int) -> dict:
    """Every badge in the table with the user's unlock status."""
    unlocked = unlocked_badges(db, user_id)
    badges = [
        {
            **badge.to_dict(),
            "unlocked": badge.id in unlocked,
            "unlocked_at": unlocked[badge.id].isoformat() if badge.id in unlocked else None,
        }
        for badge in BADGES.values()
    ]
    return {
        "badges": badges,
        "unlocked_count": len(unlocked),
        "total_count": len(BADGES),
    }
