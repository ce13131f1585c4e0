"""badge rules

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 12:00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "badge_rules",
        sa.Column("badge_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False, server_default=""),
        sa.Column("star_category", sa.String(50), nullable=True),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("threshold > 0", name="ck_badge_rules_threshold_positive"),
        sa.PrimaryKeyConstraint("badge_id", name="pk_badge_rules"),
    )
    op.create_index("ix_badge_rules_star_category", "badge_rules", ["star_category"])


def downgrade() -> None:
    op.drop_index("ix_badge_rules_star_category", table_name="badge_rules")
    op.drop_table("badge_rules")
