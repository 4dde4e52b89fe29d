"""
Check-ins: validation, analysis (inline, on demand, attached), the record
lock after analysis, crisis alerts and statistics.
"""
import asyncio

import pytest

from mindwell.core.errors import NotFoundError, RecordLockedError, ValidationError
from mindwell.services.checkins import (
    CheckinDraft,
    analyze_existing,
    attach_analysis,
    create_checkin,
    create_checkin_with_analysis,
    get_checkin_stats,
    update_checkin,
)
from mindwell.services.llm_client import ClassifierClient


class BrokenClient(ClassifierClient):
    @property
    def name(self) -> str:
        return "broken"

    async def complete(self, prompt: str) -> str:
        raise RuntimeError("unexpected client bug")


def _draft(**overrides) -> CheckinDraft:
    fields = dict(mood_rating="okay", stress_level=5, selected_emotions=[], check_in_text="")
    fields.update(overrides)
    return CheckinDraft(**fields)


class TestCreate:
    @pytest.mark.parametrize("overrides, field", [
        ({"mood_rating": None}, "mood_rating"),
        ({"mood_rating": "meh"}, "mood_rating"),
        ({"stress_level": None}, "stress_level"),
        ({"stress_level": 0}, "stress_level"),
        ({"stress_level": 11}, "stress_level"),
        ({"stress_level": True}, "stress_level"),
    ])
    def test_invalid_inputs(self, db, user, overrides, field):
        with pytest.raises(ValidationError) as exc:
            create_checkin(db, user.id, _draft(**overrides))
        assert exc.value.details["field"] == field

    def test_unknown_emotions_dropped(self, db, user):
        row = create_checkin(db, user.id, _draft(selected_emotions=["sad", "bored", "sad", "calm"]))
        assert row.selected_emotions == ["sad", "calm"]
        assert row.ai_analysis is None

    def test_inline_analysis(self, db, user):
        row = asyncio.run(create_checkin_with_analysis(db, user.id, _draft(mood_rating="terrible", stress_level=9)))
        assert row.ai_analysis["risk_level"] == "high"
        assert row.ai_analysis["is_fallback"] is True

    def test_analysis_failure_still_stores(self, db, user):
        row = asyncio.run(create_checkin_with_analysis(
            db, user.id, _draft(check_in_text="long day"), client=BrokenClient(),
        ))
        assert row.id > 0
        assert row.ai_analysis is None


class TestLockAndAnalysis:
    def test_update_before_analysis(self, db, user):
        row = create_checkin(db, user.id, _draft())
        updated = update_checkin(db, user.id, row.id, stress_level=2, check_in_text="better now")
        assert updated.stress_level == 2
        assert updated.check_in_text == "better now"

    def test_empty_update_rejected(self, db, user):
        row = create_checkin(db, user.id, _draft())
        with pytest.raises(ValidationError):
            update_checkin(db, user.id, row.id)

    def test_analysed_checkin_locked(self, db, user):
        row = create_checkin(db, user.id, _draft())
        asyncio.run(analyze_existing(db, user.id, row.id))
        with pytest.raises(RecordLockedError):
            update_checkin(db, user.id, row.id, stress_level=2)

    def test_attach_sanitises(self, db, user):
        row = create_checkin(db, user.id, _draft())
        row = attach_analysis(db, user.id, row.id, {
            "sentiment": "negative", "sentiment_score": -3, "risk_level": "critical",
            "emotions": ["sad"] * 20,
        })
        assert row.ai_analysis["sentiment_score"] == -1.0
        assert len(row.ai_analysis["emotions"]) == 10
        assert row.ai_analysis["requires_immediate_attention"] is True

    def test_attach_requires_payload(self, db, user):
        row = create_checkin(db, user.id, _draft())
        with pytest.raises(ValidationError):
            attach_analysis(db, user.id, row.id, {})

    def test_other_users_checkin_not_found(self, db, user):
        row = create_checkin(db, user.id, _draft())
        with pytest.raises(NotFoundError):
            asyncio.run(analyze_existing(db, user.id + 1, row.id))


class TestStats:
    def test_stats(self, db, user):
        create_checkin(db, user.id, _draft(mood_rating="good", stress_level=2, selected_emotions=["calm"]))
        row = create_checkin(db, user.id, _draft(mood_rating="terrible", stress_level=9, selected_emotions=["sad"]))
        asyncio.run(analyze_existing(db, user.id, row.id))

        stats = get_checkin_stats(db, user.id)
        assert stats["total_checkins"] == 2
        assert stats["mood_distribution"] == {"good": 1, "terrible": 1}
        assert stats["emotion_distribution"] == {"calm": 1, "sad": 1}
        assert stats["average_stress_level"] == 5.5
        assert stats["risk_level_distribution"] == {"high": 1}
        assert stats["analysis_summary"]["total_entries"] == 1

    def test_stats_empty(self, db, user):
        stats = get_checkin_stats(db, user.id)
        assert stats["total_checkins"] == 0
        assert stats["analysis_summary"] is None


class TestCheckinEndpoints:
    def test_crisis_alert(self, client, headers):
        r = client.post("/checkins", json={
            "mood_rating": "terrible", "stress_level": 9,
            "check_in_text": "I keep thinking I want to end my life",
            "auto_analyze": True,
        }, headers=headers)
        assert r.status_code == 201
        body = r.json()
        assert body["alert"]["type"] == "crisis"
        assert body["checkin"]["ai_analysis"]["risk_level"] == "critical"

    def test_no_alert_for_ordinary_checkin(self, client, headers):
        r = client.post("/checkins", json={"mood_rating": "good", "stress_level": 3}, headers=headers)
        assert r.status_code == 201
        assert r.json()["alert"] is None

    def test_locked_update(self, client, headers):
        created = client.post("/checkins", json={
            "mood_rating": "okay", "stress_level": 5, "auto_analyze": True,
        }, headers=headers).json()
        r = client.put(f"/checkins/{created['checkin']['id']}", json={"stress_level": 2}, headers=headers)
        assert r.status_code == 409
        assert r.json()["code"] == "RECORD_LOCKED"

    def test_validation_error_envelope(self, client, headers):
        r = client.post("/checkins", json={"mood_rating": "fine", "stress_level": 5}, headers=headers)
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"
        assert r.json()["details"]["field"] == "mood_rating"

    def test_analyze_without_storing(self, client, headers):
        r = client.post("/checkins/analyze", json={"mood_rating": "great", "stress_level": 1}, headers=headers)
        assert r.status_code == 200
        assert r.json()["analysis"]["sentiment"] == "positive"
        assert client.get("/checkins", headers=headers).json()["total"] == 0

    def test_analyze_requires_input(self, client, headers):
        r = client.post("/checkins/analyze", json={"mood_rating": "great"}, headers=headers)
        assert r.status_code == 422

    def test_analyze_stored_then_delete(self, client, headers):
        created = client.post("/checkins", json={"mood_rating": "not_good", "stress_level": 6}, headers=headers).json()
        checkin_id = created["checkin"]["id"]

        r = client.post(f"/checkins/{checkin_id}/analyze", headers=headers)
        assert r.status_code == 200
        assert r.json()["checkin"]["ai_analysis"]["risk_level"] == "moderate"

        r = client.delete(f"/checkins/{checkin_id}", headers=headers)
        assert r.status_code == 200
        assert client.get(f"/checkins/{checkin_id}", headers=headers).status_code == 404

    def test_attach_endpoint(self, client, headers):
        created = client.post("/checkins", json={"mood_rating": "okay", "stress_level": 4}, headers=headers).json()
        r = client.put(
            f"/checkins/{created['checkin']['id']}/analysis",
            json={"ai_analysis": {"sentiment": "positive", "sentiment_score": 0.4}},
            headers=headers,
        )
        assert r.status_code == 200
        assert r.json()["checkin"]["ai_analysis"]["sentiment"] == "positive"

    def test_list_and_stats(self, client, headers):
        for mood in ("good", "okay", "good"):
            client.post("/checkins", json={"mood_rating": mood, "stress_level": 4}, headers=headers)
        listing = client.get("/checkins", params={"limit": 2}, headers=headers).json()
        assert listing["total"] == 3
        assert len(listing["items"]) == 2

        stats = client.get("/checkins/stats", headers=headers).json()
        assert stats["mood_distribution"] == {"good": 2, "okay": 1}
