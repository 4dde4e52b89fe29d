"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-03-02 00:00:00.000000

users, user_goals and the two activity stores: checkin_responses (free
text) and mood_entries / activity_completions (structured).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    activity_type_enum = sa.Enum(
        "check_in", "quick_mood", "mindfulness", "breathing", "journaling",
        name="goal_activity_type_enum",
    )
    activity_type_enum.create(op.get_bind(), checkfirst=True)

    time_frame_enum = sa.Enum("daily", "weekly", "monthly", name="goal_time_frame_enum")
    time_frame_enum.create(op.get_bind(), checkfirst=True)

    mood_rating_enum = sa.Enum(
        "great", "good", "okay", "not_good", "terrible", name="mood_rating_enum"
    )
    mood_rating_enum.create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index("ix_users_id", "users", ["id"])

    # --- user_goals ---
    op.create_table(
        "user_goals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(50), nullable=False),
        sa.Column("activity_type", sa.Enum(
            "check_in", "quick_mood", "mindfulness", "breathing", "journaling",
            name="goal_activity_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("target_count", sa.Integer(), nullable=False),
        sa.Column("time_frame", sa.Enum(
            "daily", "weekly", "monthly", name="goal_time_frame_enum", create_type=False,
        ), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_goals_id", "user_goals", ["id"])
    op.create_index("ix_user_goals_user_id", "user_goals", ["user_id"])
    op.create_index("ix_user_goals_is_active", "user_goals", ["is_active"])

    # --- checkin_responses ---
    op.create_table(
        "checkin_responses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mood_rating", sa.Enum(
            "great", "good", "okay", "not_good", "terrible",
            name="mood_rating_enum", create_type=False,
        ), nullable=False),
        sa.Column("stress_level", sa.Integer(), nullable=False),
        sa.Column("selected_emotions", sa.JSON(), nullable=False),
        sa.Column("check_in_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_checkin_responses_id", "checkin_responses", ["id"])
    op.create_index("ix_checkin_responses_user_id", "checkin_responses", ["user_id"])
    op.create_index("ix_checkin_responses_created_at", "checkin_responses", ["created_at"])
    op.create_index("ix_checkin_user_created", "checkin_responses", ["user_id", "created_at"])

    # --- mood_entries ---
    op.create_table(
        "mood_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sentiment_score", sa.Numeric(4, 2), nullable=False, comment="-1.00 – 1.00"),
        sa.Column("sentiment_label", sa.String(32), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mood_entries_id", "mood_entries", ["id"])
    op.create_index("ix_mood_entries_user_id", "mood_entries", ["user_id"])
    op.create_index("ix_mood_entries_check_in_date", "mood_entries", ["check_in_date"])
    op.create_index("ix_mood_entries_created_at", "mood_entries", ["created_at"])

    # --- activity_completions ---
    op.create_table(
        "activity_completions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("activity_id", sa.String(64), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_completions_id", "activity_completions", ["id"])
    op.create_index("ix_activity_completions_user_id", "activity_completions", ["user_id"])
    op.create_index("ix_activity_completions_activity_id", "activity_completions", ["activity_id"])
    op.create_index("ix_activity_completions_completed_at", "activity_completions", ["completed_at"])


def downgrade() -> None:
    op.drop_table("activity_completions")
    op.drop_table("mood_entries")
    op.drop_table("checkin_responses")
    op.drop_table("user_goals")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS mood_rating_enum")
    op.execute("DROP TYPE IF EXISTS goal_time_frame_enum")
    op.execute("DROP TYPE IF EXISTS goal_activity_type_enum")
