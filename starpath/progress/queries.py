"""Statement builders for progress operations.

Every write here is a single atomic statement: conflict-aware inserts for
set membership and lazy record creation, conditional updates for monotonic
status transitions.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Select, Update, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.database.dialect import conflict_insert
from starpath.progress.models import CourseProgress, CourseProgressItem


progress_table = CourseProgress.__table__
items_table = CourseProgressItem.__table__


def ensure_progress(session: AsyncSession, child_id: str, course_id: str, now: datetime) -> Any:
    return (
        conflict_insert(session, progress_table)
        .values(
            child_id=child_id,
            course_id=course_id,
            status="not_started",
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["child_id", "course_id"])
    )


def add_completed_item(session: AsyncSession, child_id: str, course_id: str, content_item_id: str, now: datetime) -> Any:
    return (
        conflict_insert(session, items_table)
        .values(child_id=child_id, course_id=course_id, content_item_id=content_item_id, completed_at=now)
        .on_conflict_do_nothing(index_elements=["child_id", "course_id", "content_item_id"])
        .returning(items_table.c.content_item_id)
    )


def advance_status(
    child_id: str,
    course_id: str,
    from_statuses: tuple[str, ...],
    to_status: str,
    now: datetime,
) -> Update:
    """Move status forward only from one of ``from_statuses``; never backwards."""
    values = {"status": to_status, "updated_at": now}
    if to_status == "completed":
        values["completed_at"] = func.coalesce(progress_table.c.completed_at, now)
    return (
        update(progress_table)
        .where(
            progress_table.c.child_id == child_id,
            progress_table.c.course_id == course_id,
            progress_table.c.status.in_(from_statuses),
        )
        .values(**values)
    )


def select_child_progress(child_id: str) -> Select:
    return select(progress_table).where(progress_table.c.child_id == child_id)


def select_single_progress(child_id: str, course_id: str) -> Select:
    return select(progress_table).where(
        progress_table.c.child_id == child_id,
        progress_table.c.course_id == course_id,
    )


def select_completed_items(child_id: str, course_id: str | None = None) -> Select:
    query = select(items_table.c.course_id, items_table.c.content_item_id).where(items_table.c.child_id == child_id)
    if course_id is not None:
        query = query.where(items_table.c.course_id == course_id)
    return query
