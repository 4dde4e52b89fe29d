"""
Risk & sentiment analysis of check-ins.

Two paths produce the same RiskAnalysis shape:

  LLM path      : prompt an external classifier, then validate every field
                   of its JSON reply (sanitize_analysis). Never trusted as-is.
  fallback path : deterministic rules over mood / stress / emotion tags /
                   free text (fallback_analysis). Used whenever the LLM is
                   not configured or fails in any way.

Fallback rules, in order (each step only tightens the assessment):

  1. crisis phrase in text      → critical, short-circuit
  2. mood baseline              → MOOD_TO_SENTIMENT
  3. stress ≥ 8                 → score ≤ -0.3, risk high
     stress 6–7                 → score ≤ 0, risk moderate (high if terrible)
  4. negative tags outnumber positive ones with ≥ 2 negatives
                                → score ≤ -0.2, neutral becomes negative
  5. text keyword hits          → ±0.2 nudge, bounded to [-0.9, 0.9]
  6. final label from score / mixed tags
  7. suggestions, 8. supportive message

The crisis scan also runs before any LLM call, so crisis text is always
flagged critical without waiting on the network.
"""
from __future__ import annotations

import json
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, asdict, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from mindwell.core.enums import enum_value
from mindwell.core.errors import ClassifierUnavailableError, ValidationError
from mindwell.services.llm_client import ClassifierClient, get_default_client

logger = logging.getLogger(__name__)

SENTIMENTS = ("positive", "negative", "neutral", "mixed")
RISK_LEVELS = ("low", "moderate", "high", "critical")

MAX_EMOTIONS = 10
MAX_KEYWORDS = 10
MAX_THEMES = 5
MAX_SUGGESTIONS = 6
MAX_FALLBACK_SUGGESTIONS = 4
MAX_FALLBACK_KEYWORDS = 5

DEFAULT_SUPPORTIVE_MESSAGE = "Thank you for sharing. Your feelings are valid."


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

CRISIS_KEYWORDS = (
    "suicide",
    "kill myself",
    "end my life",
    "want to die",
    "self-harm",
    "hurt myself",
)

CRISIS_RESOURCES = (
    "Please reach out to a crisis helpline: National Suicide Prevention Lifeline: 988 (US)",
    "Text HOME to 741741 to reach the Crisis Text Line",
    "Contact a trusted friend, family member, or mental health professional",
    "If you're in immediate danger, please call emergency services (911)",
)

CRISIS_MESSAGE = (
    "I'm concerned about what you've shared. Please reach out to a crisis "
    "helpline or trusted person immediately. You matter and help is available."
)

MOOD_TO_SENTIMENT: dict[str, tuple[str, float]] = {
    "great":    ("positive", 0.9),
    "good":     ("positive", 0.6),
    "okay":     ("neutral", 0.0),
    "not_good": ("negative", -0.5),
    "terrible": ("negative", -0.8),
}

MOOD_LABELS = {
    "great": "Great (very positive)",
    "good": "Good (positive)",
    "okay": "Okay (neutral)",
    "not_good": "Not Good (negative)",
    "terrible": "Terrible (very negative)",
}

NEGATIVE_EMOTIONS = ("anxious", "sad", "angry", "tired", "stressed")
POSITIVE_EMOTIONS = ("calm", "happy", "energetic")

POSITIVE_KEYWORDS = (
    "happy", "good", "great", "wonderful", "amazing", "grateful", "thankful",
    "excited", "peaceful", "calm", "better", "love", "joy",
)
NEGATIVE_KEYWORDS = (
    "sad", "angry", "frustrated", "anxious", "worried", "stressed", "tired",
    "exhausted", "lonely", "depressed", "hopeless", "overwhelmed", "scared",
)

BREATHING_SUGGESTION = (
    "Try a 5-minute breathing exercise: breathe in for 4 counts, hold for 4, exhale for 6"
)

EMOTION_SUGGESTIONS: dict[str, str] = {
    "anxious": (
        "Practice the 5-4-3-2-1 grounding technique: notice 5 things you see, "
        "4 you hear, 3 you feel, 2 you smell, 1 you taste"
    ),
    "sad": "Reach out to someone you trust - connection can help lift your spirits",
    "angry": (
        "Try progressive muscle relaxation - tense and release each muscle "
        "group to release tension"
    ),
    "tired": (
        "Consider a short power nap (15-20 min) or some gentle stretching to restore energy"
    ),
    "stressed": (
        "Write down your worries to get them out of your head - it can reduce "
        "their power over you"
    ),
}

SAVOR_SUGGESTION = "Take a moment to savor this positive feeling - what contributed to it?"

SENTIMENT_SUGGESTIONS: dict[str, tuple[str, ...]] = {
    "positive": (
        "Continue your positive momentum with a gratitude journal entry",
        "Share your good feelings with someone you care about",
        "Take a moment to appreciate what's going well",
    ),
    "negative": (
        BREATHING_SUGGESTION,
        "Write down three things, no matter how small, that you're grateful for",
        "Consider reaching out to a friend or loved one for support",
        "Take a short walk outside if possible - nature can help shift your mood",
    ),
    "neutral": (
        "Check in with your body - are you holding any tension?",
        "Set an intention for the rest of your day",
        "Take a mindful moment to notice five things around you",
    ),
    "mixed": (
        "Acknowledge that it's okay to feel multiple emotions at once",
        "Try journaling about what's causing these mixed feelings",
        "Practice self-compassion - you're doing your best",
    ),
}

HIGH_STRESS_MESSAGE = (
    "I can see you're under a lot of stress right now. Remember to be gentle "
    "with yourself - you're doing the best you can."
)

MOOD_MESSAGES: dict[str, str] = {
    "great": "It's wonderful to see you're feeling great! Cherish this positive energy.",
    "good": "Good to hear things are going well. Keep taking care of yourself!",
    "okay": "Thank you for checking in. It's perfectly fine to have average days too.",
    "not_good": "I'm sorry to hear things aren't going well. Remember, tough times are temporary.",
    "terrible": (
        "I hear that things are really hard right now. Please know that you're "
        "not alone, and it's okay to reach out for support."
    ),
}

GENERIC_MESSAGE = (
    "Thank you for taking the time to check in with yourself. Self-awareness "
    "is an important part of wellbeing."
)

ANALYSIS_PROMPT = """You are a mental health analysis assistant for a wellness app called MindWell. Analyze the following check-in from a user and provide a structured assessment.

Your analysis must be compassionate, non-judgmental, and focused on supporting the user's mental wellbeing. Use both the structured data (mood rating, stress level, selected emotions) and the optional free-text thoughts.

Return a JSON object with the following structure:
{
  "sentiment": "positive" | "negative" | "neutral" | "mixed",
  "sentiment_score": <number between -1 and 1>,
  "emotions": [<detected emotions>],
  "keywords": [<significant words or phrases from the text>],
  "themes": [<identified themes, e.g. "work stress", "relationships">],
  "suggestions": [<2-4 personalized mindfulness suggestions>],
  "risk_level": "low" | "moderate" | "high" | "critical",
  "risk_indicators": [<concerning phrases or patterns, empty if none>],
  "supportive_message": "<a brief, compassionate message>"
}

Risk levels:
- "low": normal daily emotions, no concerning content
- "moderate": signs of stress, anxiety or mild depression (stress 6-7, negative mood)
- "high": significant distress, isolation or hopelessness without immediate danger (stress 8-10, terrible mood)
- "critical": any mention of self-harm, suicide or harming others

Respond with valid JSON only, no additional text. Weight the structured inputs heavily when the text is minimal.

User's check-in:
"""


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class RiskAnalysis:
    sentiment: str = "neutral"
    sentiment_score: float = 0.0
    emotions: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    themes: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    risk_level: str = "low"
    risk_indicators: list[str] = field(default_factory=list)
    supportive_message: str = DEFAULT_SUPPORTIVE_MESSAGE
    requires_immediate_attention: bool = False
    is_fallback: bool = False

    @property
    def is_crisis(self) -> bool:
        return self.risk_level == "critical"

    def to_dict(self) -> dict:
        return asdict(self)


def _round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Fallback rules
# ---------------------------------------------------------------------------

def has_crisis_indicators(text: Optional[str]) -> bool:
    lower = (text or "").lower()
    return any(phrase in lower for phrase in CRISIS_KEYWORDS)


def crisis_analysis(selected_emotions: Optional[list] = None) -> RiskAnalysis:
    emotions = [enum_value(e) for e in (selected_emotions or [])]
    return RiskAnalysis(
        sentiment="negative",
        sentiment_score=-0.9,
        emotions=emotions + ["distressed"],
        themes=["crisis"],
        suggestions=list(CRISIS_RESOURCES),
        risk_level="critical",
        risk_indicators=["Crisis-related content detected"],
        supportive_message=CRISIS_MESSAGE,
        requires_immediate_attention=True,
        is_fallback=True,
    )


def _extract_keywords(text: str) -> list[str]:
    seen: list[str] = []
    for word in re.findall(r"\b[a-zA-Z]{4,}\b", text):
        if word not in seen:
            seen.append(word)
        if len(seen) >= MAX_FALLBACK_KEYWORDS:
            break
    return seen


def suggestions_for_context(
    sentiment: str,
    stress_level: Optional[int],
    selected_emotions: list[str],
) -> list[str]:
    suggestions: list[str] = []

    if stress_level is not None and stress_level >= 7:
        suggestions.append(BREATHING_SUGGESTION)
        suggestions.append(
            "Step away from stressors if possible - even a 5-minute break can help"
        )

    for emotion, suggestion in EMOTION_SUGGESTIONS.items():
        if emotion in selected_emotions:
            suggestions.append(suggestion)

    if any(e in selected_emotions for e in POSITIVE_EMOTIONS):
        suggestions.append(SAVOR_SUGGESTION)

    if len(suggestions) < 2:
        generic = SENTIMENT_SUGGESTIONS.get(sentiment, SENTIMENT_SUGGESTIONS["neutral"])
        for s in generic:
            if s not in suggestions and len(suggestions) < MAX_FALLBACK_SUGGESTIONS:
                suggestions.append(s)

    return suggestions[:MAX_FALLBACK_SUGGESTIONS]


def supportive_message_for_context(
    mood_rating: Optional[str],
    stress_level: Optional[int],
    selected_emotions: list[str],
) -> str:
    if stress_level is not None and stress_level >= 8:
        return HIGH_STRESS_MESSAGE
    if mood_rating in MOOD_MESSAGES:
        return MOOD_MESSAGES[mood_rating]
    if "anxious" in selected_emotions or "stressed" in selected_emotions:
        return (
            "Feeling anxious can be overwhelming. Take things one step at a "
            "time - you've got this."
        )
    if "sad" in selected_emotions:
        return (
            "It's okay to feel sad. Your emotions are valid, and it's brave of "
            "you to acknowledge them."
        )
    return GENERIC_MESSAGE


def fallback_analysis(
    text: Optional[str] = None,
    mood_rating: Optional[str] = None,
    stress_level: Optional[int] = None,
    selected_emotions: Optional[list] = None,
) -> RiskAnalysis:
    """Deterministic analysis; never raises and never touches the network."""
    mood = enum_value(mood_rating)
    emotions = [enum_value(e) for e in (selected_emotions or [])]
    text = text or ""
    lower = text.lower()

    if has_crisis_indicators(lower):
        return crisis_analysis(emotions)

    sentiment, score = MOOD_TO_SENTIMENT.get(mood, ("neutral", 0.0))
    risk_level = "low"

    if stress_level:
        if stress_level >= 8:
            score = min(score, -0.3)
            risk_level = "high"
        elif stress_level >= 6:
            score = min(score, 0.0)
            risk_level = "high" if mood == "terrible" else "moderate"

    neg_tags = sum(1 for e in emotions if e in NEGATIVE_EMOTIONS)
    pos_tags = sum(1 for e in emotions if e in POSITIVE_EMOTIONS)
    if neg_tags > pos_tags and neg_tags >= 2:
        score = min(score, -0.2)
        if sentiment == "neutral":
            sentiment = "negative"

    if text:
        pos_hits = sum(1 for w in POSITIVE_KEYWORDS if w in lower)
        neg_hits = sum(1 for w in NEGATIVE_KEYWORDS if w in lower)
        if neg_hits > pos_hits and neg_hits >= 2:
            score = max(-0.9, score - 0.2)
        elif pos_hits > neg_hits and pos_hits >= 2:
            score = min(0.9, score + 0.2)

    if score > 0.2:
        sentiment = "positive"
    elif score < -0.2:
        sentiment = "negative"
    elif pos_tags > 0 and neg_tags > 0:
        sentiment = "mixed"
    else:
        sentiment = "neutral"

    return RiskAnalysis(
        sentiment=sentiment,
        sentiment_score=_round2(score),
        emotions=emotions,
        keywords=_extract_keywords(text),
        themes=[],
        suggestions=suggestions_for_context(sentiment, stress_level, emotions),
        risk_level=risk_level,
        risk_indicators=[],
        supportive_message=supportive_message_for_context(mood, stress_level, emotions),
        is_fallback=True,
    )


# ---------------------------------------------------------------------------
# LLM path
# ---------------------------------------------------------------------------

def format_checkin_for_prompt(
    text: Optional[str],
    mood_rating: Optional[str] = None,
    stress_level: Optional[int] = None,
    selected_emotions: Optional[list] = None,
) -> str:
    mood = enum_value(mood_rating)
    emotions = [enum_value(e) for e in (selected_emotions or [])]
    lines = []
    if mood:
        lines.append(f"Mood Rating: {MOOD_LABELS.get(mood, mood)}")
    if stress_level:
        lines.append(f"Stress Level: {stress_level}/10")
    if emotions:
        lines.append(f"Selected Emotions: {', '.join(emotions)}")

    body = "\n".join(lines)
    if text and text.strip():
        body += f'\n\nAdditional Thoughts:\n"{text.strip()}"'
    else:
        body += "\n\nAdditional Thoughts: (none provided)"
    return body.lstrip("\n")


def parse_llm_response(raw: str) -> dict:
    """Bare JSON, or the first {...} block embedded in surrounding prose."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        match = re.search(r"\{.*\}", raw or "", re.DOTALL)
        if not match:
            raise ClassifierUnavailableError("Failed to parse classifier response")
        try:
            parsed = json.loads(match.group(0))
        except ValueError as exc:
            raise ClassifierUnavailableError("Failed to parse classifier response") from exc

    if not isinstance(parsed, dict):
        raise ClassifierUnavailableError("Classifier response is not an object")
    return parsed


def _str_list(value: Any, cap: Optional[int] = None) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(v) for v in value if isinstance(v, (str, int, float)) and not isinstance(v, bool)]
    return items[:cap] if cap is not None else items


def sanitize_analysis(raw: dict) -> RiskAnalysis:
    """Field-by-field validation of an untrusted classifier reply."""
    score = raw.get("sentiment_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
        score = 0.0
    score = max(-1.0, min(1.0, float(score)))

    sentiment = raw.get("sentiment")
    risk_level = raw.get("risk_level")
    message = raw.get("supportive_message")

    return RiskAnalysis(
        sentiment=sentiment if sentiment in SENTIMENTS else "neutral",
        sentiment_score=score,
        emotions=_str_list(raw.get("emotions"), MAX_EMOTIONS),
        keywords=_str_list(raw.get("keywords"), MAX_KEYWORDS),
        themes=_str_list(raw.get("themes"), MAX_THEMES),
        suggestions=_str_list(raw.get("suggestions"), MAX_SUGGESTIONS),
        risk_level=risk_level if risk_level in RISK_LEVELS else "low",
        risk_indicators=_str_list(raw.get("risk_indicators")),
        supportive_message=message if isinstance(message, str) else DEFAULT_SUPPORTIVE_MESSAGE,
    )


async def analyze_checkin(
    text: Optional[str] = None,
    mood_rating: Optional[str] = None,
    stress_level: Optional[int] = None,
    selected_emotions: Optional[list] = None,
    client: Optional[ClassifierClient] = None,
) -> RiskAnalysis:
    """
    Analyse one check-in. Needs the mood + stress pair or non-empty text.

    `client` defaults to the configured classifier; with no classifier (or on
    any classifier failure) the rule-based analysis is returned.
    """
    has_structured = mood_rating is not None and stress_level is not None
    has_text = isinstance(text, str) and bool(text.strip())
    if not has_structured and not has_text:
        raise ValidationError(
            "Either structured data (mood_rating, stress_level) or check-in text is required"
        )

    if has_crisis_indicators(text):
        return crisis_analysis(selected_emotions)

    if client is None:
        client = get_default_client()
    if client is None:
        logger.debug("No classifier configured, using fallback analysis")
        return fallback_analysis(text, mood_rating, stress_level, selected_emotions)

    prompt = ANALYSIS_PROMPT + format_checkin_for_prompt(
        text, mood_rating, stress_level, selected_emotions
    )
    try:
        raw = await client.complete(prompt)
        analysis = sanitize_analysis(parse_llm_response(raw))
    except ClassifierUnavailableError as exc:
        logger.warning("Classifier %s unavailable (%s), using fallback", client.name, exc.message)
        return fallback_analysis(text, mood_rating, stress_level, selected_emotions)

    if analysis.is_crisis:
        analysis.suggestions = list(CRISIS_RESOURCES) + analysis.suggestions
        analysis.requires_immediate_attention = True
    return analysis


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def aggregate_analyses(analyses: list[Optional[dict]]) -> Optional[dict]:
    """Summary over stored analyses; None when none of them carries a score."""
    valid = [
        a for a in analyses
        if isinstance(a, dict) and isinstance(a.get("sentiment_score"), (int, float))
    ]
    if not valid:
        return None

    avg = sum(a["sentiment_score"] for a in valid) / len(valid)
    distribution = Counter(a.get("sentiment", "neutral") for a in valid)
    emotions = Counter(e for a in valid for e in (a.get("emotions") or []))

    if avg > 0.2:
        trend = "positive"
    elif avg < -0.2:
        trend = "negative"
    else:
        trend = "stable"

    return {
        "average_sentiment_score": _round2(avg),
        "sentiment_distribution": dict(distribution),
        "top_emotions": [e for e, _ in emotions.most_common(5)],
        "total_entries": len(valid),
        "has_high_risk_entries": any(a.get("risk_level") in ("high", "critical") for a in valid),
        "trend": trend,
    }
