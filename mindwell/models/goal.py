from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from mindwell.core.timeutils import utcnow
from mindwell.db.base import Base


class ActivityType(str, enum.Enum):
    check_in = "check_in"
    quick_mood = "quick_mood"
    mindfulness = "mindfulness"
    breathing = "breathing"
    journaling = "journaling"


class TimeFrame(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class Goal(Base):
    """
    A user-defined target: `target_count` activities of `activity_type`
    per `time_frame`.

    Never hard-deleted by the lifecycle: completion and abandonment both set
    is_active=False. completed_at is set only on completion.
    """

    __tablename__ = "user_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(50), nullable=False)
    activity_type: Mapped[str] = mapped_column(
        Enum(ActivityType, name="goal_activity_type_enum"), nullable=False
    )
    target_count: Mapped[int] = mapped_column(Integer, nullable=False)
    time_frame: Mapped[str] = mapped_column(
        Enum(TimeFrame, name="goal_time_frame_enum"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )
