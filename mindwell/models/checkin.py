"""
CheckinResponse: the free-text check-in store.

One row per daily check-in: structured mood/stress/emotion inputs plus an
optional free-text note. `ai_analysis` starts empty and is attached later by
the sentiment classifier; the rest of the row is not rewritten by analysis.

selected_emotions / ai_analysis: JSON columns (list[str] / dict).
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, Enum, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from mindwell.core.timeutils import utcnow
from mindwell.db.base import Base


class MoodRating(str, enum.Enum):
    great = "great"
    good = "good"
    okay = "okay"
    not_good = "not_good"
    terrible = "terrible"


class Emotion(str, enum.Enum):
    anxious = "anxious"
    calm = "calm"
    sad = "sad"
    happy = "happy"
    angry = "angry"
    tired = "tired"
    energetic = "energetic"
    stressed = "stressed"


class CheckinResponse(Base):
    __tablename__ = "checkin_responses"
    __table_args__ = (
        Index("ix_checkin_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mood_rating: Mapped[str] = mapped_column(
        Enum(MoodRating, name="mood_rating_enum"), nullable=False
    )
    stress_level: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_emotions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    check_in_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_analysis: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
