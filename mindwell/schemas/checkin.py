"""
Check-in request / response schemas.

POST /checkins             → CheckinCreateRequest → CheckinEnvelope
POST /checkins/analyze     → AnalyzeTextRequest   → AnalysisEnvelope
POST /checkins/{id}/analyze                       → CheckinEnvelope
GET  /checkins/stats                              → CheckinStatsResponse
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CheckinCreateRequest(BaseModel):
    mood_rating: Optional[str] = Field(
        default=None,
        description='"great" | "good" | "okay" | "not_good" | "terrible"',
        examples=["okay"],
    )
    stress_level: Optional[int] = Field(default=None, description="1 – 10.", examples=[5])
    selected_emotions: list[str] = Field(
        default_factory=list,
        description="Unknown tags are dropped.",
        examples=[["anxious", "tired"]],
    )
    check_in_text: str = Field(default="", examples=["Long day at work."])
    auto_analyze: bool = Field(
        default=False, description="Run the classifier and store its analysis inline."
    )


class CheckinUpdateRequest(BaseModel):
    """Rejected with RECORD_LOCKED once the check-in has been analysed."""
    model_config = ConfigDict(extra="forbid")

    mood_rating: Optional[str] = None
    stress_level: Optional[int] = None
    selected_emotions: Optional[list[str]] = None
    check_in_text: Optional[str] = None


class AttachAnalysisRequest(BaseModel):
    ai_analysis: dict[str, Any]


class AnalyzeTextRequest(BaseModel):
    """Either `text` or the mood_rating + stress_level pair is required."""
    text: Optional[str] = None
    mood_rating: Optional[str] = None
    stress_level: Optional[int] = None
    selected_emotions: list[str] = Field(default_factory=list)


class RiskAnalysisResponse(BaseModel):
    sentiment: str
    sentiment_score: float
    emotions: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    risk_level: str
    risk_indicators: list[str] = Field(default_factory=list)
    supportive_message: str
    requires_immediate_attention: bool = False
    is_fallback: bool = False


class CrisisAlert(BaseModel):
    type: str
    message: str


class CheckinResponse(BaseModel):
    id: int
    mood_rating: str
    stress_level: int
    selected_emotions: list[str]
    check_in_text: str
    ai_analysis: Optional[dict[str, Any]] = None
    created_at: str


class CheckinEnvelope(BaseModel):
    checkin: CheckinResponse
    alert: Optional[CrisisAlert] = None


class AnalysisEnvelope(BaseModel):
    analysis: RiskAnalysisResponse
    alert: Optional[CrisisAlert] = None


class CheckinListResponse(BaseModel):
    total: int
    items: list[CheckinResponse]


class KeywordCount(BaseModel):
    keyword: str
    count: int


class CheckinStatsResponse(BaseModel):
    total_checkins: int
    sentiment_distribution: dict[str, int]
    risk_level_distribution: dict[str, int]
    mood_distribution: dict[str, int]
    emotion_distribution: dict[str, int]
    average_stress_level: float
    top_keywords: list[KeywordCount]
    analysis_summary: Optional[dict[str, Any]] = None
