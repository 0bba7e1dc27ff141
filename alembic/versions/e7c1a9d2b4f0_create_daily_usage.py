"""create daily_usage counters for generation quotas

Revision ID: e7c1a9d2b4f0
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "e7c1a9d2b4f0"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "daily_usage",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("feature", sa.String(32), nullable=False, server_default="ai_uses"),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        # ON CONFLICT target of the atomic increment
        sa.UniqueConstraint("user_id", "day", "feature", name="uq_daily_usage_user_day_feature"),
    )
    op.create_index("ix_daily_usage_user_id", "daily_usage", ["user_id"])

    # Guard against a negative count from a stray release
    op.create_check_constraint("ck_daily_usage_count_non_negative", "daily_usage", "count >= 0")


def downgrade() -> None:
    op.drop_constraint("ck_daily_usage_count_non_negative", "daily_usage", type_="check")
    op.drop_index("ix_daily_usage_user_id", table_name="daily_usage")
    op.drop_table("daily_usage")
