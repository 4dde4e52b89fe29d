"""
Structured activity store: quick mood entries and mindfulness completions.

ActivityCompletion.activity_id carries its category as a prefix
("breathing_box_4x4", "journaling_gratitude", "body_scan_10min"). Goals and
badges that care about a category match on that prefix.
"""
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, DateTime, Date, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from mindwell.core.timeutils import utcnow
from mindwell.db.base import Base


BREATHING_PREFIX = "breathing_"
JOURNALING_PREFIX = "journaling_"


class MoodEntry(Base):
    __tablename__ = "mood_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sentiment_score: Mapped[Decimal] = mapped_column(
        Numeric(4, 2), nullable=False,
        comment="-1.00 – 1.00",
    )
    sentiment_label: Mapped[str] = mapped_column(String(32), nullable=False)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )


class ActivityCompletion(Base):
    __tablename__ = "activity_completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
