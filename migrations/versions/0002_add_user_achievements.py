"""add user_achievements table

Revision ID: 0002
Revises: 0001
Create Date: 2026-03-04

Badge unlocks. Unique constraint (user_id, badge_id) makes a concurrent
duplicate unlock fail instead of inserting twice. Append-only.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("badge_id", sa.String(50), nullable=False),
        sa.Column(
            "unlocked_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_user_achievements_id", "user_achievements", ["id"])
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"])
    op.create_unique_constraint(
        "uq_user_achievement_badge",
        "user_achievements",
        ["user_id", "badge_id"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_user_achievement_badge", "user_achievements", type_="unique")
    op.drop_index("ix_user_achievements_user_id", table_name="user_achievements")
    op.drop_index("ix_user_achievements_id", table_name="user_achievements")
    op.drop_table("user_achievements")
