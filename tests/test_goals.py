"""
Goal lifecycle: validation, capacity, manual and automatic completion,
abandonment, history and the /goals endpoints.
"""
from datetime import timedelta

import pytest

from mindwell.core.errors import (
    CapacityExceededError,
    InvalidGoalStateError,
    NotFoundError,
    NotYetAchievedError,
    ValidationError,
)
from mindwell.core.timeutils import as_utc
from mindwell.models.goal import ActivityType, Goal
from mindwell.services import goals as goals_service
from mindwell.services.checkins import CheckinDraft, create_checkin
from mindwell.services.goals import (
    MAX_ACTIVE_GOALS,
    GoalDraft,
    abandon_goal,
    check_goal_achieved,
    complete_goal,
    create_goal,
    delete_goal_history,
    get_goal,
    get_goal_history,
    get_goals_summary,
    update_goal,
)

from tests.conftest import NOW


def _draft(**overrides) -> GoalDraft:
    fields = dict(title="Check in", activity_type="check_in", target_count=1, time_frame="daily")
    fields.update(overrides)
    return GoalDraft(**fields)


def _checkin(db, user, now=None, text=""):
    return create_checkin(
        db, user.id,
        CheckinDraft(mood_rating="okay", stress_level=3, check_in_text=text),
        now=now,
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateGoal:
    def test_create_basic(self, db, user):
        goal = create_goal(db, user.id, _draft(title="  Daily Check-in  "))
        assert goal.id > 0
        assert goal.title == "Daily Check-in"
        assert goal.is_active is True
        assert goal.completed_at is None

    @pytest.mark.parametrize("overrides, field", [
        ({"title": None}, "title"),
        ({"title": "   "}, "title"),
        ({"title": "x" * 51}, "title"),
        ({"activity_type": "yoga"}, "activity_type"),
        ({"time_frame": "yearly"}, "time_frame"),
        ({"target_count": 0}, "target_count"),
        ({"target_count": 101}, "target_count"),
        ({"target_count": "many"}, "target_count"),
        ({"target_count": True}, "target_count"),
    ])
    def test_invalid_fields_rejected_before_write(self, db, user, overrides, field):
        with pytest.raises(ValidationError) as exc:
            create_goal(db, user.id, _draft(**overrides))
        assert exc.value.details["field"] == field
        assert db.query(Goal).count() == 0

    def test_title_of_fifty_chars_accepted(self, db, user):
        goal = create_goal(db, user.id, _draft(title="x" * 50))
        assert len(goal.title) == 50

    def test_from_template(self, db, user):
        goal = create_goal(db, user.id, GoalDraft(template_id="weekly_checkins"))
        assert goal.activity_type.value == "check_in"
        assert goal.target_count == 5
        assert goal.time_frame.value == "weekly"

    def test_template_fields_overridden(self, db, user):
        goal = create_goal(db, user.id, GoalDraft(template_id="weekly_checkins", target_count=3))
        assert goal.target_count == 3

    def test_template_does_not_mask_invalid_target(self, db, user):
        with pytest.raises(ValidationError) as exc:
            create_goal(db, user.id, GoalDraft(template_id="weekly_checkins", target_count=0))
        assert exc.value.details["field"] == "target_count"
        assert db.query(Goal).count() == 0

    def test_template_does_not_mask_blank_title(self, db, user):
        with pytest.raises(ValidationError) as exc:
            create_goal(db, user.id, GoalDraft(template_id="weekly_checkins", title="  "))
        assert exc.value.details["field"] == "title"

    def test_unknown_template_rejected(self, db, user):
        with pytest.raises(ValidationError) as exc:
            create_goal(db, user.id, GoalDraft(template_id="nope"))
        assert exc.value.details["field"] == "template_id"

    def test_capacity(self, db, user):
        for i in range(MAX_ACTIVE_GOALS):
            create_goal(db, user.id, _draft(title=f"Goal {i}"))
        with pytest.raises(CapacityExceededError) as exc:
            create_goal(db, user.id, _draft(title="One too many"))
        assert exc.value.details["max_active"] == MAX_ACTIVE_GOALS
        assert db.query(Goal).count() == MAX_ACTIVE_GOALS

    def test_abandoned_goals_free_a_slot(self, db, user):
        goals = [create_goal(db, user.id, _draft(title=f"Goal {i}")) for i in range(MAX_ACTIVE_GOALS)]
        abandon_goal(db, user.id, goals[0].id)
        assert create_goal(db, user.id, _draft(title="Replacement")).is_active

    def test_create_unlocks_goal_setter(self, db, user, dispatcher):
        create_goal(db, user.id, _draft())
        assert "badge_unlocked" in dispatcher.types()


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

class TestCompleteGoal:
    def test_not_yet_achieved_carries_progress(self, db, user):
        goal = create_goal(db, user.id, _draft(target_count=2), now=NOW - timedelta(hours=1))
        with pytest.raises(NotYetAchievedError) as exc:
            complete_goal(db, user.id, goal.id, now=NOW)
        progress = exc.value.details["progress"]
        assert progress["current"] == 0
        assert progress["target"] == 2
        db.refresh(goal)
        assert goal.is_active is True

    def test_complete_when_target_met(self, db, user, dispatcher):
        goal = create_goal(db, user.id, _draft(target_count=2), now=NOW - timedelta(hours=3))
        _checkin(db, user, now=NOW - timedelta(hours=2))
        goal = get_goal(db, user.id, goal.id)
        goal.target_count = 1
        db.commit()

        done = complete_goal(db, user.id, goal.id, now=NOW)
        assert done.is_active is False
        assert done.completed_at is not None
        assert "goal_achieved" in dispatcher.types()

    def test_complete_inactive_rejected(self, db, user):
        goal = create_goal(db, user.id, _draft())
        abandon_goal(db, user.id, goal.id)
        with pytest.raises(InvalidGoalStateError):
            complete_goal(db, user.id, goal.id)

    def test_other_users_goal_not_found(self, db, user):
        goal = create_goal(db, user.id, _draft())
        with pytest.raises(NotFoundError):
            complete_goal(db, user.id + 1, goal.id)


class TestAbandonAndUpdate:
    def test_abandon_is_soft(self, db, user):
        goal = create_goal(db, user.id, _draft())
        abandon_goal(db, user.id, goal.id)
        row = db.get(Goal, goal.id)
        assert row is not None
        assert row.is_active is False
        assert row.completed_at is None

    def test_abandon_twice_rejected(self, db, user):
        goal = create_goal(db, user.id, _draft())
        abandon_goal(db, user.id, goal.id)
        with pytest.raises(InvalidGoalStateError):
            abandon_goal(db, user.id, goal.id)

    def test_update_fields(self, db, user):
        goal = create_goal(db, user.id, _draft())
        updated = update_goal(db, user.id, goal.id, title="Renamed", target_count=4, time_frame="weekly")
        assert updated.title == "Renamed"
        assert updated.target_count == 4
        assert updated.time_frame.value == "weekly"
        assert updated.activity_type.value == "check_in"

    def test_empty_update_rejected(self, db, user):
        goal = create_goal(db, user.id, _draft())
        with pytest.raises(ValidationError):
            update_goal(db, user.id, goal.id)

    def test_update_inactive_rejected(self, db, user):
        goal = create_goal(db, user.id, _draft())
        abandon_goal(db, user.id, goal.id)
        with pytest.raises(InvalidGoalStateError):
            update_goal(db, user.id, goal.id, title="Too late")


class TestAutoCompletion:
    def test_weekly_five_of_five(self, db, user, dispatcher):
        goal = create_goal(db, user.id, _draft(title="5 a week", target_count=5, time_frame="weekly"))
        for _ in range(4):
            _checkin(db, user)
        assert goal.is_active is True

        _checkin(db, user)
        db.refresh(goal)
        assert goal.is_active is False
        assert goal.completed_at is not None
        assert dispatcher.types().count("goal_achieved") == 1

    def test_only_matching_activity_type(self, db, user):
        mood_goal = create_goal(db, user.id, _draft(activity_type="quick_mood"))
        _checkin(db, user)
        db.refresh(mood_goal)
        assert mood_goal.is_active is True

    def test_journaling_needs_text(self, db, user):
        goal = create_goal(db, user.id, _draft(activity_type="journaling"))
        _checkin(db, user, text="")
        db.refresh(goal)
        assert goal.is_active is True
        _checkin(db, user, text="Today I noticed I was calmer.")
        db.refresh(goal)
        assert goal.completed_at is not None

    def test_check_goal_achieved_returns_completed(self, db, user):
        goal = create_goal(db, user.id, _draft(), now=NOW - timedelta(hours=2))
        _checkin(db, user, now=NOW - timedelta(hours=1))
        # create_checkin already ran the check at its own instant
        db.refresh(goal)
        assert goal.completed_at is not None
        assert check_goal_achieved(db, user.id, "check_in", now=NOW) == []

    def test_weekly_goal_completes_on_checkin_at_explicit_instant(self, db, user):
        goal = create_goal(
            db, user.id, _draft(target_count=1, time_frame="weekly"), now=NOW - timedelta(hours=1)
        )
        _checkin(db, user, now=NOW)
        db.refresh(goal)
        assert goal.is_active is False
        assert as_utc(goal.completed_at) == NOW

    def test_failed_check_does_not_block_other_types(self, db, user, monkeypatch, caplog):
        journal = create_goal(db, user.id, _draft(activity_type="journaling"))
        original = goals_service.check_goal_achieved

        def flaky(db, user_id, activity_type, now=None):
            if activity_type == ActivityType.check_in:
                raise RuntimeError("store down")
            return original(db, user_id, activity_type, now)

        monkeypatch.setattr(goals_service, "check_goal_achieved", flaky)
        checkin = _checkin(db, user, text="Today went fine.")

        assert checkin.id > 0
        db.refresh(journal)
        assert journal.completed_at is not None
        assert "Goal check failed" in caplog.text


# ---------------------------------------------------------------------------
# History & summary
# ---------------------------------------------------------------------------

class TestHistory:
    def test_history_and_completed_filter(self, db, user):
        a = create_goal(db, user.id, _draft(title="Abandoned"))
        abandon_goal(db, user.id, a.id)
        c = create_goal(db, user.id, _draft(title="Completed"))
        _checkin(db, user)
        create_goal(db, user.id, _draft(title="Still active", target_count=5))

        total, items = get_goal_history(db, user.id)
        assert total == 2
        assert {g.title for g in items} == {"Abandoned", "Completed"}

        total, items = get_goal_history(db, user.id, completed_only=True)
        assert total == 1
        assert items[0].id == c.id

    def test_delete_history_keeps_active(self, db, user):
        a = create_goal(db, user.id, _draft(title="Old"))
        abandon_goal(db, user.id, a.id)
        keep = create_goal(db, user.id, _draft(title="Keep", target_count=3))
        assert delete_goal_history(db, user.id) == 1
        assert db.query(Goal).filter(Goal.user_id == user.id).one().id == keep.id

    def test_delete_history_older_than(self, db, user):
        a = create_goal(db, user.id, _draft(title="Recent"))
        abandon_goal(db, user.id, a.id)
        assert delete_goal_history(db, user.id, older_than_days=30) == 0

    def test_summary(self, db, user):
        create_goal(db, user.id, _draft(title="Half", target_count=2))
        create_goal(db, user.id, _draft(title="Nothing", activity_type="quick_mood", target_count=4))
        dropped = create_goal(db, user.id, _draft(title="Dropped", activity_type="mindfulness"))
        abandon_goal(db, user.id, dropped.id)
        _checkin(db, user)

        s = get_goals_summary(db, user.id)
        assert s.active_goals == 2
        assert s.abandoned_goals == 1
        assert s.completed_goals == 0
        assert s.total_goals == 3
        assert s.overall_progress == 25
        assert s.slots_remaining == MAX_ACTIVE_GOALS - 2


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestGoalEndpoints:
    def test_requires_identity(self, client):
        r = client.get("/goals")
        assert r.status_code == 401
        assert r.json()["code"] == "UNAUTHENTICATED"

    def test_create_and_list(self, client, headers):
        r = client.post("/goals", json={
            "title": "Breathe", "activity_type": "breathing",
            "target_count": 3, "time_frame": "weekly",
        }, headers=headers)
        assert r.status_code == 201
        body = r.json()
        assert body["progress"]["current"] == 0
        assert body["progress"]["percent_complete"] == 0
        assert body["time_remaining"]["days_remaining"] in (6, 7)

        r = client.get("/goals", headers=headers)
        assert r.status_code == 200
        listing = r.json()
        assert listing["total"] == 1
        assert listing["max_active"] == MAX_ACTIVE_GOALS
        assert listing["items"][0]["title"] == "Breathe"

    def test_create_invalid(self, client, headers):
        r = client.post("/goals", json={
            "title": "Bad", "activity_type": "yoga", "target_count": 3, "time_frame": "daily",
        }, headers=headers)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["field"] == "activity_type"

    def test_capacity_conflict(self, client, headers):
        for i in range(MAX_ACTIVE_GOALS):
            client.post("/goals", json={
                "title": f"G{i}", "activity_type": "check_in", "target_count": 5, "time_frame": "weekly",
            }, headers=headers)
        r = client.post("/goals", json={"template_id": "daily_checkin"}, headers=headers)
        assert r.status_code == 409
        assert r.json()["code"] == "CAPACITY_EXCEEDED"

    def test_activity_type_immutable(self, client, headers):
        goal = client.post("/goals", json={"template_id": "mood_weekly"}, headers=headers).json()
        r = client.put(f"/goals/{goal['id']}", json={"activity_type": "check_in"}, headers=headers)
        assert r.status_code == 422

    def test_update(self, client, headers):
        goal = client.post("/goals", json={"template_id": "mood_weekly"}, headers=headers).json()
        r = client.put(f"/goals/{goal['id']}", json={"target_count": 12}, headers=headers)
        assert r.status_code == 200
        assert r.json()["target_count"] == 12

    def test_complete_not_yet_achieved(self, client, headers):
        goal = client.post("/goals", json={"template_id": "weekly_checkins"}, headers=headers).json()
        r = client.post(f"/goals/{goal['id']}/complete", headers=headers)
        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "GOAL_NOT_YET_ACHIEVED"
        assert body["details"]["progress"]["target"] == 5

    def test_abandon_then_history(self, client, headers):
        goal = client.post("/goals", json={"template_id": "mood_weekly"}, headers=headers).json()
        r = client.delete(f"/goals/{goal['id']}", headers=headers)
        assert r.status_code == 200
        assert r.json()["is_active"] is False
        assert r.json()["completed_at"] is None

        history = client.get("/goals/history", headers=headers).json()
        assert history["total"] == 1

        r = client.delete("/goals/history", headers=headers)
        assert r.json()["deleted"] == 1

    def test_not_found(self, client, headers):
        r = client.get("/goals/9999", headers=headers)
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"

    def test_templates_filter(self, client):
        r = client.get("/goals/templates", params={"category": "stress_relief"})
        assert r.status_code == 200
        body = r.json()
        assert body["total"] == 2
        assert all(t["activity_type"] == "breathing" for t in body["items"])

    def test_summary(self, client, headers):
        client.post("/goals", json={"template_id": "mood_weekly"}, headers=headers)
        r = client.get("/goals/summary", headers=headers)
        assert r.status_code == 200
        assert r.json()["active_goals"] == 1
        assert r.json()["slots_remaining"] == MAX_ACTIVE_GOALS - 1
