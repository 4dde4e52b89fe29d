"""
Risk / sentiment analysis: the rule-based fallback, the crisis short-circuit,
sanitising classifier replies and aggregation.
"""
import asyncio
import json

import pytest

from mindwell.core.errors import ClassifierUnavailableError, ValidationError
from mindwell.services.llm_client import ClassifierClient
from mindwell.services.sentiment import (
    BREATHING_SUGGESTION,
    CRISIS_RESOURCES,
    HIGH_STRESS_MESSAGE,
    MOOD_MESSAGES,
    aggregate_analyses,
    analyze_checkin,
    fallback_analysis,
    format_checkin_for_prompt,
    parse_llm_response,
    sanitize_analysis,
)


class FakeClient(ClassifierClient):
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Fallback rules
# ---------------------------------------------------------------------------

class TestFallbackAnalysis:
    def test_crisis_text_short_circuits(self):
        a = fallback_analysis("Some days I want to die", "good", 2, ["happy"])
        assert a.risk_level == "critical"
        assert a.sentiment == "negative"
        assert a.sentiment_score == -0.9
        assert a.requires_immediate_attention is True
        assert a.suggestions == list(CRISIS_RESOURCES)
        assert "distressed" in a.emotions

    def test_crisis_scan_is_case_insensitive(self):
        assert fallback_analysis("Thinking about SELF-HARM again").is_crisis

    def test_terrible_mood_max_stress(self):
        a = fallback_analysis(None, "terrible", 10, [])
        assert a.sentiment == "negative"
        assert a.sentiment_score == -0.8
        assert a.risk_level == "high"
        assert a.supportive_message == HIGH_STRESS_MESSAGE
        assert a.suggestions[0] == BREATHING_SUGGESTION
        assert a.is_fallback is True
        assert a.requires_immediate_attention is False

    def test_great_mood_low_stress(self):
        a = fallback_analysis(None, "great", 1, [])
        assert a.sentiment == "positive"
        assert a.sentiment_score == 0.9
        assert a.risk_level == "low"
        assert a.supportive_message == MOOD_MESSAGES["great"]
        assert 2 <= len(a.suggestions) <= 4

    def test_moderate_stress_caps_score(self):
        a = fallback_analysis(None, "good", 6, [])
        assert a.risk_level == "moderate"
        assert a.sentiment_score == 0.0
        assert a.sentiment == "neutral"

    def test_moderate_stress_with_terrible_mood_is_high(self):
        assert fallback_analysis(None, "terrible", 7, []).risk_level == "high"

    def test_mixed_tags(self):
        a = fallback_analysis(None, "okay", 3, ["anxious", "happy"])
        assert a.sentiment == "mixed"

    def test_negative_tags_pull_score_down(self):
        a = fallback_analysis(None, "good", 3, ["anxious", "sad", "tired"])
        assert a.sentiment_score == -0.2

    def test_keyword_nudge(self):
        up = fallback_analysis("grateful and happy, a wonderful day", "good", 2, [])
        assert up.sentiment_score == 0.8
        down = fallback_analysis("tired, lonely and overwhelmed", "okay", 3, [])
        assert down.sentiment_score == -0.2

    def test_keyword_nudge_bounded(self):
        a = fallback_analysis("happy grateful wonderful", "great", 1, [])
        assert a.sentiment_score == 0.9

    def test_keywords_extracted(self):
        a = fallback_analysis("Work was long and work was hard but lunch helped today", "okay", 4)
        assert a.keywords == ["Work", "long", "work", "hard", "lunch"]

    def test_suggestions_capped_at_four(self):
        a = fallback_analysis(None, "not_good", 9, ["anxious", "sad", "angry", "tired", "stressed"])
        assert len(a.suggestions) == 4

    def test_positive_tag_reinforcement(self):
        a = fallback_analysis(None, "good", 2, ["calm"])
        assert any("savor" in s for s in a.suggestions)


# ---------------------------------------------------------------------------
# Classifier path
# ---------------------------------------------------------------------------

class TestAnalyzeCheckin:
    def test_requires_some_input(self):
        with pytest.raises(ValidationError):
            run(analyze_checkin(text="   ", mood_rating="good"))

    def test_text_alone_is_enough(self):
        a = run(analyze_checkin(text="A calm and peaceful evening"))
        assert a.is_fallback

    def test_no_client_uses_rules(self):
        a = run(analyze_checkin(None, "okay", 5, []))
        assert a.is_fallback is True

    def test_crisis_never_reaches_classifier(self):
        client = FakeClient(reply="{}")
        a = run(analyze_checkin("I want to end my life", "terrible", 9, [], client=client))
        assert a.is_crisis
        assert client.prompts == []

    def test_reply_is_sanitised(self):
        reply = 'Sure! Here is the analysis: {"sentiment": "ecstatic", "sentiment_score": 4.2, ' \
                '"emotions": ["sad", 3, null, {"x": 1}], "keywords": "work", ' \
                '"themes": ["a", "b", "c", "d", "e", "f"], "risk_level": "moderate", ' \
                '"supportive_message": 42} Hope this helps.'
        a = run(analyze_checkin("Long week", "okay", 5, [], client=FakeClient(reply=reply)))
        assert a.is_fallback is False
        assert a.sentiment == "neutral"
        assert a.sentiment_score == 1.0
        assert a.emotions == ["sad", "3"]
        assert a.keywords == []
        assert len(a.themes) == 5
        assert a.risk_level == "moderate"
        assert isinstance(a.supportive_message, str)

    def test_critical_reply_gets_crisis_resources(self):
        reply = json.dumps({
            "sentiment": "negative", "sentiment_score": -0.95, "risk_level": "critical",
            "suggestions": ["Talk to someone"], "supportive_message": "You matter.",
        })
        a = run(analyze_checkin("Nothing matters anymore", "terrible", 9, [], client=FakeClient(reply=reply)))
        assert a.requires_immediate_attention is True
        assert a.suggestions[:len(CRISIS_RESOURCES)] == list(CRISIS_RESOURCES)
        assert a.suggestions[-1] == "Talk to someone"

    def test_unavailable_classifier_falls_back(self):
        client = FakeClient(error=ClassifierUnavailableError("HTTP 429"))
        a = run(analyze_checkin(None, "terrible", 10, ["sad"], client=client))
        assert len(client.prompts) == 1
        assert a.is_fallback is True
        assert a.risk_level == "high"

    def test_garbage_reply_falls_back(self):
        a = run(analyze_checkin("ok day", "okay", 4, [], client=FakeClient(reply="no json here")))
        assert a.is_fallback is True

    def test_prompt_carries_structured_context(self):
        client = FakeClient(reply="{}")
        run(analyze_checkin("", "not_good", 7, ["anxious", "tired"], client=client))
        prompt = client.prompts[0]
        assert "Mood Rating: Not Good (negative)" in prompt
        assert "Stress Level: 7/10" in prompt
        assert "Selected Emotions: anxious, tired" in prompt
        assert "(none provided)" in prompt


class TestParsing:
    def test_bare_json(self):
        assert parse_llm_response('{"sentiment": "positive"}') == {"sentiment": "positive"}

    def test_non_object_rejected(self):
        with pytest.raises(ClassifierUnavailableError):
            parse_llm_response("[1, 2, 3]")

    def test_sanitize_defaults(self):
        a = sanitize_analysis({})
        assert a.sentiment == "neutral"
        assert a.sentiment_score == 0.0
        assert a.risk_level == "low"
        assert a.emotions == []

    def test_sanitize_rejects_bool_score(self):
        assert sanitize_analysis({"sentiment_score": True}).sentiment_score == 0.0

    def test_format_text_only(self):
        assert format_checkin_for_prompt("hello") == 'Additional Thoughts:\n"hello"'


class TestAggregate:
    def test_empty(self):
        assert aggregate_analyses([]) is None
        assert aggregate_analyses([None, {"sentiment": "positive"}]) is None

    def test_summary(self):
        result = aggregate_analyses([
            {"sentiment": "negative", "sentiment_score": -0.6, "emotions": ["sad"], "risk_level": "high"},
            {"sentiment": "negative", "sentiment_score": -0.4, "emotions": ["sad", "tired"]},
            {"sentiment": "neutral", "sentiment_score": 0.1, "emotions": []},
        ])
        assert result["average_sentiment_score"] == -0.3
        assert result["sentiment_distribution"] == {"negative": 2, "neutral": 1}
        assert result["top_emotions"][0] == "sad"
        assert result["total_entries"] == 3
        assert result["has_high_risk_entries"] is True
        assert result["trend"] == "negative"
