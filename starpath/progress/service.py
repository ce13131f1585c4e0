"""Business logic for course progress and sequential unlocking."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from starpath.curriculum.graph import CourseDefinition, CurriculumGraph
from starpath.curriculum.service import CurriculumStore
from starpath.database.dialect import store_operation
from starpath.exceptions import NotApplicableError, ResourceNotFoundError
from starpath.progress import queries
from starpath.progress.schemas import (
    ContentCompletionOutcome,
    CourseProgressResponse,
    CourseStatus,
    JourneyEntry,
    JourneyResponse,
    ProgressRecord,
    UnlockState,
)
from starpath.rewards.service import RewardLedger


logger = logging.getLogger(__name__)


@dataclass
class StoredProgress:
    """Persisted progress rows for one child, keyed by course id."""

    statuses: dict[str, CourseStatus] = field(default_factory=dict)
    completed_at: dict[str, datetime | None] = field(default_factory=dict)
    items: dict[str, set[str]] = field(default_factory=lambda: defaultdict(set))


def derive_statuses(graph: CurriculumGraph, stored: StoredProgress) -> list[tuple[CourseDefinition, CourseStatus]]:
    """Walk courses by ascending rank and derive each status.

    The first course is always at least not_started. Course n is locked
    unless course n-1 is completed; an existing in_progress/completed status
    is never downgraded. A course with no required items is complete as soon
    as it is reachable.
    """
    derived = []
    previous_completed = True
    for course in graph.courses:
        stored_status = stored.statuses.get(course.id)
        if previous_completed:
            if not course.items:
                status = CourseStatus.COMPLETED
            elif stored_status is None or stored_status == CourseStatus.LOCKED:
                status = CourseStatus.NOT_STARTED
            else:
                status = stored_status
        elif stored_status in (CourseStatus.IN_PROGRESS, CourseStatus.COMPLETED):
            status = stored_status
        else:
            status = CourseStatus.LOCKED

        derived.append((course, status))
        previous_completed = status == CourseStatus.COMPLETED
    return derived


def _percentage(completed: int, total: int) -> int:
    if total == 0:
        return 100
    return round(completed / total * 100)


class ProgressTracker:
    """Tracks per (child, course) status and the set of completed items."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: RewardLedger | None = None,
        curriculum: CurriculumStore | None = None,
    ) -> None:
        self.session = session
        self.ledger = ledger or RewardLedger(session)
        self.curriculum = curriculum or CurriculumStore(session)

    @store_operation
    async def load_stored(self, child_id: str) -> StoredProgress:
        stored = StoredProgress()
        rows = await self.session.execute(queries.select_child_progress(child_id))
        for row in rows:
            stored.statuses[row.course_id] = CourseStatus(row.status)
            stored.completed_at[row.course_id] = row.completed_at

        item_rows = await self.session.execute(queries.select_completed_items(child_id))
        for row in item_rows:
            stored.items[row.course_id].add(row.content_item_id)
        return stored

    async def evaluate_unlock_state(self, child_id: str, graph: CurriculumGraph | None = None) -> list[UnlockState]:
        """Recompute every course's status in curriculum order. Persists nothing."""
        graph = graph or await self.curriculum.load_graph()
        stored = await self.load_stored(child_id)
        return [
            UnlockState(course_id=course.id, status=status) for course, status in derive_statuses(graph, stored)
        ]

    async def get_child_journey(self, child_id: str) -> JourneyResponse:
        """Read-only projection, including synthesized locked courses."""
        graph = await self.curriculum.load_graph()
        stored = await self.load_stored(child_id)

        entries = []
        for course, status in derive_statuses(graph, stored):
            completed = stored.items.get(course.id, set()) & course.required_ids
            entries.append(
                JourneyEntry(
                    course_id=course.id,
                    title=course.title,
                    sequence_position=course.sequence_position,
                    status=status,
                    completed_items=len(completed),
                    total_items=len(course.required_ids),
                    progress_percentage=_percentage(len(completed), len(course.required_ids)),
                    completed_at=stored.completed_at.get(course.id),
                )
            )
        return JourneyResponse(child_id=child_id, courses=entries)

    async def get_course_progress(self, child_id: str, course_id: str) -> CourseProgressResponse:
        graph = await self.curriculum.load_graph()
        course = graph.course(course_id)
        if course is None:
            raise ResourceNotFoundError("Course", course_id)

        stored = await self.load_stored(child_id)
        derived = derive_statuses(graph, stored)
        rank = graph.rank(course_id)
        status = derived[rank][1]

        blocked_by = None
        if status == CourseStatus.LOCKED:
            blocked_by = next(c.id for c, s in derived[:rank] if s != CourseStatus.COMPLETED)

        completed = sorted(stored.items.get(course_id, set()) & course.required_ids)
        return CourseProgressResponse(
            child_id=child_id,
            course_id=course_id,
            status=status,
            completed_content_item_ids=completed,
            completed_at=stored.completed_at.get(course_id),
            persisted=course_id in stored.statuses,
            title=course.title,
            sequence_position=course.sequence_position,
            required_content_item_ids=[item.id for item in course.items],
            progress_percentage=_percentage(len(completed), len(course.required_ids)),
            accessible=status != CourseStatus.LOCKED,
            blocked_by_course_id=blocked_by,
        )

    async def require_accessible(self, child_id: str, course: CourseDefinition, graph: CurriculumGraph) -> None:
        """Reject signals for a course that is still locked."""
        stored = await self.load_stored(child_id)
        for candidate, status in derive_statuses(graph, stored):
            if candidate.id == course.id and status == CourseStatus.LOCKED:
                logger.warning(f"Rejected signal for locked course {course.id}, child {child_id}")
                msg = f"Course {course.id} is locked for child {child_id}"
                raise NotApplicableError(msg)

    async def record_content_completion(
        self,
        child_id: str,
        course_id: str,
        content_item_id: str,
        graph: CurriculumGraph | None = None,
        *,
        access_checked: bool = False,
    ) -> ContentCompletionOutcome:
        """Add an item to the course's completed set; idempotent.

        When the set equals the course's required set the course moves to
        completed and the course reward is requested. The request is repeated
        on every call that finds the set full, so a retry after a failure
        between completion and grant still grants exactly once.

        Callers that already ran ``require_accessible`` pass ``access_checked``;
        statuses never regress, so an accessible course stays accessible.
        """
        graph = graph or await self.curriculum.load_graph()
        course = graph.course(course_id)
        if course is None:
            raise ResourceNotFoundError("Course", course_id)
        if content_item_id not in course.required_ids:
            logger.warning(f"Rejected completion of {content_item_id}: not required by course {course_id}")
            msg = f"Content item {content_item_id} is not required by course {course_id}"
            raise NotApplicableError(msg)

        if not access_checked:
            await self.require_accessible(child_id, course, graph)

        newly_recorded = await self._add_item(child_id, course_id, content_item_id)
        completed_ids = await self._completed_ids(child_id, course_id)

        course_reward = None
        course_completed = completed_ids >= course.required_ids
        if course_completed:
            just_completed = await self._mark_completed(child_id, course_id)
            if just_completed:
                logger.info(f"Course {course_id} completed by child {child_id}")
            course_reward = await self.ledger.grant_course_reward(
                child_id, course_id, course.reward.stars, course.reward.badge_id
            )

        record = await self.get_record(child_id, course_id)
        return ContentCompletionOutcome(
            record=record,
            item_newly_recorded=newly_recorded,
            course_completed=course_completed,
            course_reward=course_reward,
        )

    @store_operation
    async def get_record(
        self, child_id: str, course_id: str, unpersisted_status: CourseStatus = CourseStatus.LOCKED
    ) -> ProgressRecord:
        """Stored record, or a synthesized one with ``unpersisted_status`` if none exists yet."""
        row = (await self.session.execute(queries.select_single_progress(child_id, course_id))).first()
        completed = await self._completed_ids(child_id, course_id)
        if row is None:
            return ProgressRecord(child_id=child_id, course_id=course_id, status=unpersisted_status)
        return ProgressRecord(
            child_id=child_id,
            course_id=course_id,
            status=CourseStatus(row.status),
            completed_content_item_ids=sorted(completed),
            completed_at=row.completed_at,
            persisted=True,
        )

    @store_operation
    async def _add_item(self, child_id: str, course_id: str, content_item_id: str) -> bool:
        now = datetime.now(UTC)
        try:
            await self.session.execute(queries.ensure_progress(self.session, child_id, course_id, now))
            inserted = await self.session.execute(
                queries.add_completed_item(self.session, child_id, course_id, content_item_id, now)
            )
            newly_recorded = inserted.first() is not None
            await self.session.execute(
                queries.advance_status(
                    child_id,
                    course_id,
                    (CourseStatus.LOCKED.value, CourseStatus.NOT_STARTED.value),
                    CourseStatus.IN_PROGRESS.value,
                    now,
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return newly_recorded

    @store_operation
    async def _completed_ids(self, child_id: str, course_id: str) -> set[str]:
        result = await self.session.execute(queries.select_completed_items(child_id, course_id))
        return {row.content_item_id for row in result}

    @store_operation
    async def _mark_completed(self, child_id: str, course_id: str) -> bool:
        now = datetime.now(UTC)
        try:
            result = await self.session.execute(
                queries.advance_status(
                    child_id,
                    course_id,
                    (CourseStatus.LOCKED.value, CourseStatus.NOT_STARTED.value, CourseStatus.IN_PROGRESS.value),
                    CourseStatus.COMPLETED.value,
                    now,
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result.rowcount > 0
