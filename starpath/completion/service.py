"""Evaluate completion signals and feed completed items into course progress."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from starpath.completion import policies
from starpath.completion.policies import InteractionHistory
from starpath.completion.schemas import CompletionOutcome, CompletionSignal
from starpath.config.settings import Settings, get_settings
from starpath.core.interfaces import ModerationGateway
from starpath.curriculum.graph import ContentItemRef, ContentKind, CourseDefinition, CurriculumGraph
from starpath.curriculum.service import CurriculumStore
from starpath.exceptions import KindMismatchError, NotApplicableError, ResourceNotFoundError
from starpath.moderation.client import HttpModerationGateway
from starpath.progress.schemas import ContentCompletionOutcome, CourseStatus
from starpath.progress.service import ProgressTracker
from starpath.rewards.schemas import GrantResult, RewardSource
from starpath.rewards.service import RewardLedger


logger = logging.getLogger(__name__)


@dataclass
class AppliedCompletion:
    progress: ContentCompletionOutcome
    item_reward: GrantResult | None = None


class ContentCompletionService:
    """Entry point for completion signals of every content kind."""

    def __init__(
        self,
        session: AsyncSession,
        moderation: ModerationGateway | None = None,
        ledger: RewardLedger | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.moderation = moderation or HttpModerationGateway(self.settings)
        self.ledger = ledger or RewardLedger(session)
        self.curriculum = CurriculumStore(session, self.settings)
        self.progress = ProgressTracker(session, ledger=self.ledger, curriculum=self.curriculum)

    async def submit_completion(self, child_id: str, signal: CompletionSignal) -> CompletionOutcome:
        """Validate a signal, evaluate the item's policy and record it if complete.

        Raises:
            ValidationError: unknown kind, or a kind that differs from the item's
            NotApplicableError: item not required by the course, or course locked
            ResourceNotFoundError: unknown course
        """
        policies.get_policy(signal.kind)

        graph = await self.curriculum.load_graph()
        course = graph.course(signal.course_id)
        if course is None:
            raise ResourceNotFoundError("Course", signal.course_id)

        item = course.item(signal.content_item_id)
        if item is None:
            logger.warning(
                f"Rejected completion of {signal.content_item_id}: not required by course {course.id}"
            )
            msg = f"Content item {signal.content_item_id} is not required by course {course.id}"
            raise NotApplicableError(msg)
        if signal.kind != item.kind:
            raise KindMismatchError(item.id, expected=item.kind, received=signal.kind)

        await self.progress.require_accessible(child_id, course, graph)

        history = InteractionHistory(
            submitted=signal.submitted,
            reading_count=signal.reading_count,
            completion_percentage=signal.completion_percentage,
            approved=await self._review_verdict(child_id, item),
        )
        result = policies.evaluate(item, signal.kind, history, self.settings)

        outcome = CompletionOutcome(
            child_id=child_id,
            course_id=course.id,
            content_item_id=item.id,
            complete=result.complete,
            metadata=result.metadata,
        )
        if not result.complete:
            outcome.progress = await self.progress.get_record(child_id, course.id, CourseStatus.NOT_STARTED)
            return outcome

        applied = await self.apply_completion(child_id, course, item, graph, source=RewardSource.CONTENT_COMPLETION)
        outcome.progress = applied.progress.record
        outcome.course_completed = applied.progress.course_completed
        outcome.item_reward = applied.item_reward
        outcome.course_reward = applied.progress.course_reward
        return outcome

    async def apply_completion(
        self,
        child_id: str,
        course: CourseDefinition,
        item: ContentItemRef,
        graph: CurriculumGraph,
        *,
        source: RewardSource,
    ) -> AppliedCompletion:
        """Record an item as complete in one course and grant its item stars.

        The caller has already confirmed the course is accessible.
        """
        progress = await self.progress.record_content_completion(
            child_id, course.id, item.id, graph, access_checked=True
        )

        item_reward = None
        if item.stars > 0:
            item_reward = await self.ledger.grant_item_reward(
                child_id, item.id, item.stars, source=source, category=str(item.kind)
            )
        return AppliedCompletion(progress=progress, item_reward=item_reward)

    async def _review_verdict(self, child_id: str, item: ContentItemRef) -> bool:
        """Moderation is consulted for audio assignments only."""
        if item.kind != ContentKind.AUDIO_ASSIGNMENT:
            return False
        return await self.moderation.is_submission_approved(child_id, item.id)
