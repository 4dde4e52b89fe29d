from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from mindwell.db.base import Base


class User(Base):
    """
    Account row. Identity lives with the external auth provider; this table
    only keeps the id every other record hangs off and notification opt-ins.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    external_id: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    goal_notify_achieved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    goal_notify_expiring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    goal_notify_incomplete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
