"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("sequence_position", sa.Integer(), nullable=False, unique=True),
        sa.Column("reward_stars", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reward_badge_id", sa.String(64), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "content_items",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("kind", sa.String(32), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False, server_default=""),
        sa.Column("required_count", sa.Integer(), nullable=True),
        sa.Column("completion_threshold", sa.Float(), nullable=True),
        sa.Column("stars", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "course_items",
        sa.Column("course_id", sa.String(64), sa.ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "content_item_id",
            sa.String(64),
            sa.ForeignKey("content_items.id", ondelete="CASCADE"),
            primary_key=True,
            index=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "explore_videos",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False, server_default=""),
        sa.Column("video_type", sa.String(50), nullable=False, index=True),
        sa.Column("stars", sa.Integer(), nullable=True),
        sa.Column("completion_threshold", sa.Float(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "video_type_rules",
        sa.Column("video_type", sa.String(50), primary_key=True),
        sa.Column("required_watch_count", sa.Integer(), nullable=False, server_default="1"),
    )

    op.create_table(
        "course_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("child_id", sa.String(64), nullable=False, index=True),
        sa.Column("course_id", sa.String(64), nullable=False, index=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("child_id", "course_id", name="uq_course_progress_child_course"),
        sa.CheckConstraint(
            "status IN ('locked', 'not_started', 'in_progress', 'completed')",
            name="ck_course_progress_status",
        ),
    )
    op.create_table(
        "course_progress_items",
        sa.Column("child_id", sa.String(64), primary_key=True),
        sa.Column("course_id", sa.String(64), primary_key=True),
        sa.Column("content_item_id", sa.String(64), primary_key=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "watch_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("child_id", sa.String(64), nullable=False, index=True),
        sa.Column("content_item_id", sa.String(64), nullable=False),
        sa.Column("context", sa.String(20), nullable=False),
        sa.Column("watch_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completion_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("first_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("child_id", "content_item_id", "context", name="uq_watch_records_key"),
    )
    op.create_table(
        "reward_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("child_id", sa.String(64), nullable=False, index=True),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("reward_type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("badge_id", sa.String(64), nullable=True),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("child_id", "subject_id", "reward_type", name="uq_reward_ledger_grant"),
    )
    op.create_index("ix_reward_ledger_child_category", "reward_ledger", ["child_id", "category"])
    op.create_table(
        "child_stats",
        sa.Column("child_id", sa.String(64), primary_key=True),
        sa.Column("total_stars", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_badges", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "child_badges",
        sa.Column("child_id", sa.String(64), primary_key=True),
        sa.Column("badge_id", sa.String(64), primary_key=True),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("child_badges")
    op.drop_table("child_stats")
    op.drop_index("ix_reward_ledger_child_category", table_name="reward_ledger")
    op.drop_table("reward_ledger")
    op.drop_table("watch_records")
    op.drop_table("course_progress_items")
    op.drop_table("course_progress")
    op.drop_table("video_type_rules")
    op.drop_table("explore_videos")
    op.drop_table("course_items")
    op.drop_table("content_items")
    op.drop_table("courses")
