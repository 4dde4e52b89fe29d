"""
Scheduled goal sweeps: expiring reminders, expiry of closed periods and
history retention. All run against the fixed NOW instant.
"""
from datetime import datetime, timedelta, timezone

from mindwell.models.checkin import CheckinResponse, MoodRating
from mindwell.models.goal import ActivityType, Goal, TimeFrame
from mindwell.models.notification_log import NotificationLog
from mindwell.services import goal_sweeps
from mindwell.services.goal_sweeps import check_expiring_goals, cleanup_goal_history, expire_goals

from tests.conftest import NOW


def _goal(db, user, time_frame="daily", target=1, created_at=None, is_active=True, **extra):
    goal = Goal(
        user_id=user.id,
        title=f"{time_frame} goal",
        activity_type=ActivityType.check_in,
        target_count=target,
        time_frame=TimeFrame(time_frame),
        is_active=is_active,
        created_at=created_at or NOW,
        **extra,
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


def _checkin(db, user, at):
    db.add(CheckinResponse(
        user_id=user.id, mood_rating=MoodRating.okay, stress_level=4,
        selected_emotions=[], check_in_text="", created_at=at,
    ))
    db.commit()


class TestExpireGoals:
    def test_unmet_goal_deactivated(self, db, user, dispatcher):
        goal = _goal(db, user, created_at=NOW - timedelta(days=1))
        result = expire_goals(db, now=NOW)

        assert result.deactivated == 1
        assert result.completed == 0
        db.refresh(goal)
        assert goal.is_active is False
        assert goal.completed_at is None
        assert dispatcher.types() == ["goal_incomplete"]
        assert dispatcher.sent[0]["title"] == "Goal Expired"

    def test_met_goal_completed(self, db, user, dispatcher):
        created = NOW - timedelta(days=1)
        goal = _goal(db, user, created_at=created)
        _checkin(db, user, created + timedelta(hours=3))

        result = expire_goals(db, now=NOW)
        assert result.completed == 1
        db.refresh(goal)
        assert goal.is_active is False
        assert goal.completed_at is not None
        assert "goal_achieved" in dispatcher.types()

    def test_activity_after_period_ignored(self, db, user):
        _goal(db, user, created_at=NOW - timedelta(days=1))
        _checkin(db, user, NOW - timedelta(hours=1))
        assert expire_goals(db, now=NOW).deactivated == 1

    def test_open_period_untouched(self, db, user):
        goal = _goal(db, user, time_frame="weekly", created_at=NOW - timedelta(days=2))
        result = expire_goals(db, now=NOW)
        assert result.examined == 1
        assert result.deactivated == 0
        db.refresh(goal)
        assert goal.is_active is True

    def test_opted_out_notification_skipped(self, db, user, dispatcher):
        user.goal_notify_incomplete = False
        db.commit()
        _goal(db, user, created_at=NOW - timedelta(days=1))
        expire_goals(db, now=NOW)

        assert dispatcher.sent == []
        log = db.query(NotificationLog).one()
        assert log.status == "skipped"
        assert log.notification_type == "goal_incomplete"

    def test_failure_isolated_per_goal(self, db, user, monkeypatch):
        bad = _goal(db, user, created_at=NOW - timedelta(days=2))
        good = _goal(db, user, created_at=NOW - timedelta(days=1))
        real = goal_sweeps.calculate_progress

        def flaky(db_, goal, *args, **kwargs):
            if goal.id == bad.id:
                raise RuntimeError("boom")
            return real(db_, goal, *args, **kwargs)

        monkeypatch.setattr(goal_sweeps, "calculate_progress", flaky)
        result = expire_goals(db, now=NOW)

        assert result.failed == 1
        assert result.deactivated == 1
        assert db.get(Goal, good.id).is_active is False
        assert db.get(Goal, bad.id).is_active is True


class TestExpiringGoals:
    def test_reminder_within_24_hours(self, db, user, dispatcher):
        _goal(db, user, created_at=datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc))
        result = check_expiring_goals(db, now=NOW)

        assert result.notified == 1
        assert dispatcher.types() == ["goal_expiring"]
        msg = dispatcher.sent[0]
        assert msg["title"] == "Goal Expiring Soon"
        assert "12 hours" in msg["body"]
        assert "0/1" in msg["body"]

    def test_far_deadline_ignored(self, db, user, dispatcher):
        _goal(db, user, time_frame="weekly", created_at=NOW - timedelta(days=2))
        assert check_expiring_goals(db, now=NOW).notified == 0
        assert dispatcher.sent == []

    def test_met_goal_not_reminded(self, db, user, dispatcher):
        _goal(db, user, created_at=datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc))
        _checkin(db, user, NOW - timedelta(hours=2))
        assert check_expiring_goals(db, now=NOW).notified == 0

    def test_already_closed_not_reminded(self, db, user):
        _goal(db, user, created_at=NOW - timedelta(days=1))
        assert check_expiring_goals(db, now=NOW).notified == 0

    def test_inactive_goals_skipped(self, db, user):
        _goal(db, user, created_at=datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc), is_active=False)
        assert check_expiring_goals(db, now=NOW).examined == 0


class TestHistoryCleanup:
    def test_retention(self, db, user):
        old = _goal(db, user, is_active=False, updated_at=NOW - timedelta(days=100))
        recent = _goal(db, user, is_active=False, updated_at=NOW - timedelta(days=10))
        active = _goal(db, user, updated_at=NOW - timedelta(days=100))

        assert cleanup_goal_history(db, retention_days=90, now=NOW) == 1
        remaining = {g.id for g in db.query(Goal).all()}
        assert remaining == {recent.id, active.id}
        assert old.id not in remaining
