"""Watch tracking for curriculum and explore videos.

Every watch event increments the watch count, whatever the percentage.
What happens once the completion threshold is reached depends on the context:

- curriculum: the video counts as a completed item in every accessible
  course that requires it, which may complete the course
- explore: the video's stars are granted once the child has both crossed the
  threshold and watched it the required number of times for its type

Replay videos are tracked but never rewarded.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.completion.policies import resolve_params
from starpath.completion.schemas import CompletionOutcome
from starpath.completion.service import ContentCompletionService
from starpath.config.settings import Settings, get_settings
from starpath.curriculum.graph import ContentItemRef, ContentKind, CourseDefinition, CurriculumGraph, ExploreVideoDefinition
from starpath.database.dialect import conflict_insert, store_operation
from starpath.exceptions import KindMismatchError, NotApplicableError, ResourceNotFoundError, ValidationError
from starpath.progress.schemas import CourseStatus
from starpath.rewards.schemas import GrantResult, RewardSource, RewardType
from starpath.rewards.service import RewardLedger
from starpath.videos.models import WatchRecord
from starpath.videos.schemas import (
    VideoTypeProgress,
    WatchContext,
    WatchRecordSchema,
    WatchResetResult,
    WatchResult,
    WatchStatus,
)


logger = logging.getLogger(__name__)

watch_table = WatchRecord.__table__

# Each context owns its reward key, so shared ids never collide
WATCH_REWARDS = {
    WatchContext.CURRICULUM: (RewardType.ITEM_STAR, RewardSource.CURRICULUM_WATCH),
    WatchContext.EXPLORE: (RewardType.EXPLORE_STAR, RewardSource.EXPLORE_WATCH),
}


def clamp_percentage(value: Any) -> float:
    """Clamp a completion percentage into [0, 100]; reject anything non-numeric."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"Completion percentage must be a number, got {value!r}"
        raise ValidationError(msg)
    if math.isnan(value):
        msg = "Completion percentage must be a number, got NaN"
        raise ValidationError(msg)
    return min(100.0, max(0.0, float(value)))


def parse_context(value: str) -> WatchContext:
    try:
        return WatchContext(value)
    except ValueError as e:
        msg = f"Unknown watch context: {value}"
        raise ValidationError(msg) from e


class WatchTracker:
    """Records watch events and routes completed watches to progress or rewards."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: RewardLedger | None = None,
        completion: ContentCompletionService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = ledger or RewardLedger(session)
        self.completion = completion or ContentCompletionService(session, ledger=self.ledger, settings=self.settings)
        self.curriculum = self.completion.curriculum
        self.progress = self.completion.progress

    async def record_watch(
        self,
        child_id: str,
        content_item_id: str,
        context: str,
        completion_percentage: Any,
    ) -> WatchResult:
        """Record one watch event.

        Validation happens before anything is written: the percentage must be
        numeric, the context known, and the video must exist in that context.
        """
        watch_context = parse_context(context)
        percentage = clamp_percentage(completion_percentage)

        if watch_context == WatchContext.CURRICULUM:
            graph = await self.curriculum.load_graph()
            item, courses = await self._curriculum_target(child_id, content_item_id, graph)
            threshold = resolve_params(item, self.settings).completion_threshold
        else:
            video = await self.curriculum.get_explore_video(content_item_id)
            if video is None:
                raise ResourceNotFoundError("ExploreVideo", content_item_id)
            threshold = video.completion_threshold

        threshold_reached = percentage >= threshold
        record, first_completion = await self._upsert_watch(
            child_id, content_item_id, watch_context, percentage, threshold_reached
        )
        if first_completion:
            logger.info(f"First completed watch of {content_item_id} ({watch_context}) by child {child_id}")

        result = WatchResult(record=record, threshold_reached=threshold_reached, first_completion=first_completion)

        if watch_context == WatchContext.CURRICULUM:
            if threshold_reached:
                for course in courses:
                    applied = await self.completion.apply_completion(
                        child_id, course, item, graph, source=RewardSource.CURRICULUM_WATCH
                    )
                    result.reward = result.reward or applied.item_reward
                    result.completions.append(
                        CompletionOutcome(
                            child_id=child_id,
                            course_id=course.id,
                            content_item_id=item.id,
                            complete=True,
                            metadata={"completion_percentage": percentage, "completion_threshold": threshold},
                            progress=applied.progress.record,
                            course_completed=applied.progress.course_completed,
                            item_reward=applied.item_reward,
                            course_reward=applied.progress.course_reward,
                        )
                    )
        else:
            result.reward = await self._grant_explore_reward(child_id, video, record)

        result.reward_granted = bool(result.reward and result.reward.granted) or any(
            outcome.reward_granted for outcome in result.completions
        )
        return result

    @store_operation
    async def get_watch_status(self, child_id: str, content_item_id: str, context: str) -> WatchStatus:
        watch_context = parse_context(context)
        row = (await self.session.execute(self._select_record(child_id, content_item_id, watch_context))).first()
        reward_type, _ = WATCH_REWARDS[watch_context]
        stars_awarded = await self.ledger.has_granted(child_id, content_item_id, reward_type)

        if row is None:
            return WatchStatus(
                child_id=child_id,
                content_item_id=content_item_id,
                context=watch_context,
                stars_awarded=stars_awarded,
            )
        return WatchStatus(
            child_id=child_id,
            content_item_id=content_item_id,
            context=watch_context,
            watch_count=row.watch_count,
            is_watched=row.watch_count > 0,
            stars_awarded=stars_awarded,
            last_completion_percentage=row.last_completion_percentage,
            first_completed_at=row.first_completed_at,
        )

    @store_operation
    async def reset_watch(self, child_id: str, content_item_id: str, context: str) -> WatchResetResult:
        """Administrative reset: zero the watch and remove the reward it earned.

        Only the star grant earned through this watch relationship is removed.
        Course rewards and rewards earned through other signals stay.
        """
        watch_context = parse_context(context)
        try:
            result = await self.session.execute(
                update(watch_table)
                .where(
                    watch_table.c.child_id == child_id,
                    watch_table.c.content_item_id == content_item_id,
                    watch_table.c.context == watch_context.value,
                )
                .values(
                    watch_count=0,
                    last_completion_percentage=0.0,
                    first_completed_at=None,
                    updated_at=datetime.now(UTC),
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        reward_type, source = WATCH_REWARDS[watch_context]
        revoked = await self.ledger.revoke(child_id, content_item_id, reward_type, source=source)
        logger.info(
            f"Reset {watch_context} watch of {content_item_id} for child {child_id}, revoked {len(revoked)} entries"
        )
        return WatchResetResult(
            child_id=child_id,
            content_item_id=content_item_id,
            context=watch_context,
            reset=result.rowcount > 0,
            revoked=revoked,
        )

    @store_operation
    async def list_watches(self, child_id: str, context: str | None = None) -> list[WatchRecordSchema]:
        """All watch records of a child, most recently updated first."""
        query = select(watch_table).where(watch_table.c.child_id == child_id)
        if context is not None:
            query = query.where(watch_table.c.context == parse_context(context).value)
        query = query.order_by(watch_table.c.updated_at.desc(), watch_table.c.id.desc())

        result = await self.session.execute(query)
        return [WatchRecordSchema.model_validate(dict(row._mapping)) for row in result]

    @store_operation
    async def video_type_progress(self, child_id: str, video_type: str) -> VideoTypeProgress:
        video_ids = await self.curriculum.list_explore_video_ids(video_type)

        viewed = 0
        if video_ids:
            result = await self.session.execute(
                select(func.count()).where(
                    watch_table.c.child_id == child_id,
                    watch_table.c.context == WatchContext.EXPLORE.value,
                    watch_table.c.content_item_id.in_(video_ids),
                    watch_table.c.watch_count > 0,
                )
            )
            viewed = result.scalar_one()

        rewards_enabled = video_type != self.settings.REPLAY_VIDEO_TYPE
        total_stars = await self.ledger.total_stars(child_id, category=video_type) if rewards_enabled else 0
        return VideoTypeProgress(
            child_id=child_id,
            video_type=video_type,
            total_videos=len(video_ids),
            viewed_videos=viewed,
            total_stars=total_stars,
            rewards_enabled=rewards_enabled,
        )

    async def _curriculum_target(
        self, child_id: str, content_item_id: str, graph: CurriculumGraph
    ) -> tuple[ContentItemRef, list[CourseDefinition]]:
        """Resolve a curriculum video and the accessible courses that require it."""
        item = graph.item(content_item_id)
        if item is None:
            logger.warning(f"Rejected curriculum watch of {content_item_id}: not required by any course")
            msg = f"Content item {content_item_id} is not required by any course"
            raise NotApplicableError(msg)
        if item.kind != ContentKind.VIDEO:
            raise KindMismatchError(item.id, expected=item.kind, received=ContentKind.VIDEO.value)

        states = {state.course_id: state.status for state in await self.progress.evaluate_unlock_state(child_id, graph)}
        courses = [
            course
            for course in graph.courses_containing(content_item_id)
            if states.get(course.id) != CourseStatus.LOCKED
        ]
        if not courses:
            logger.warning(f"Rejected curriculum watch of {content_item_id}: no accessible course for child {child_id}")
            msg = f"Content item {content_item_id} is not required by any course child {child_id} can access"
            raise NotApplicableError(msg)
        return item, courses

    async def _grant_explore_reward(
        self, child_id: str, video: ExploreVideoDefinition, record: WatchRecordSchema
    ) -> GrantResult | None:
        if video.is_replay:
            return None
        if record.first_completed_at is None or record.watch_count < video.required_watch_count:
            return None
        if video.stars <= 0:
            return None
        return await self.ledger.grant_explore_reward(child_id, video.id, video.stars, video.video_type)

    @store_operation
    async def _upsert_watch(
        self,
        child_id: str,
        content_item_id: str,
        context: WatchContext,
        percentage: float,
        threshold_reached: bool,
    ) -> tuple[WatchRecordSchema, bool]:
        """Atomically increment the watch count; stamp the first completion once."""
        now = datetime.now(UTC)
        insert_stmt = conflict_insert(self.session, watch_table).values(
            child_id=child_id,
            content_item_id=content_item_id,
            context=context.value,
            watch_count=1,
            last_completion_percentage=percentage,
            created_at=now,
            updated_at=now,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=["child_id", "content_item_id", "context"],
            set_={
                "watch_count": watch_table.c.watch_count + 1,
                "last_completion_percentage": insert_stmt.excluded.last_completion_percentage,
                "updated_at": insert_stmt.excluded.updated_at,
            },
        ).returning(*watch_table.c)

        first_completion = False
        try:
            row = (await self.session.execute(stmt)).one()
            if threshold_reached:
                marked = await self.session.execute(
                    update(watch_table)
                    .where(watch_table.c.id == row.id, watch_table.c.first_completed_at.is_(None))
                    .values(first_completed_at=now)
                )
                first_completion = marked.rowcount == 1
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        data = dict(row._mapping)
        if first_completion:
            data["first_completed_at"] = now
        return WatchRecordSchema.model_validate(data), first_completion

    @staticmethod
    def _select_record(child_id: str, content_item_id: str, context: WatchContext) -> Any:
        return select(watch_table).where(
            watch_table.c.child_id == child_id,
            watch_table.c.content_item_id == content_item_id,
            watch_table.c.context == context.value,
        )
