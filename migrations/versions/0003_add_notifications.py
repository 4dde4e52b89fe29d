"""add notification preferences and notification_log

Revision ID: 0003
Revises: 0002
Create Date: 2026-03-06

Per-user goal notification opt-ins (all default on) and one log row per
dispatch attempt, including skipped and failed ones.
"""
from alembic import op
import sqlalchemy as sa

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    for column in ("goal_notify_achieved", "goal_notify_expiring", "goal_notify_incomplete"):
        op.add_column(
            "users",
            sa.Column(column, sa.Boolean(), nullable=False, server_default=sa.true()),
        )

    op.create_table(
        "notification_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("notification_type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_notification_log_id", "notification_log", ["id"])
    op.create_index("ix_notification_log_user_id", "notification_log", ["user_id"])
    op.create_index("ix_notification_log_notification_type", "notification_log", ["notification_type"])


def downgrade() -> None:
    op.drop_index("ix_notification_log_notification_type", table_name="notification_log")
    op.drop_index("ix_notification_log_user_id", table_name="notification_log")
    op.drop_index("ix_notification_log_id", table_name="notification_log")
    op.drop_table("notification_log")

    for column in ("goal_notify_incomplete", "goal_notify_expiring", "goal_notify_achieved"):
        op.drop_column("users", column)
