"""Read-only access to the content authoring store."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from starpath.config.settings import Settings, get_settings
from starpath.curriculum.graph import (
    ContentItemRef,
    CourseDefinition,
    CurriculumGraph,
    ExploreVideoDefinition,
    RewardSpec,
)
from starpath.curriculum.models import ContentItem, Course, CourseItem, ExploreVideo, VideoTypeRule
from starpath.database.dialect import store_operation


logger = logging.getLogger(__name__)


def _to_ref(item: ContentItem) -> ContentItemRef:
    return ContentItemRef(
        id=item.id,
        kind=item.kind,
        title=item.title,
        stars=item.stars or 0,
        required_count=item.required_count,
        completion_threshold=item.completion_threshold,
    )


class CurriculumStore:
    """Loads courses, content items and explore video parameters."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    @store_operation
    async def load_graph(self) -> CurriculumGraph:
        """Load every published course with its required items."""
        query = (
            select(Course)
            .where(Course.is_published.is_(True))
            .options(selectinload(Course.items).joinedload(CourseItem.content_item))
            .order_by(Course.sequence_position)
        )
        result = await self.session.execute(query)
        courses = [
            CourseDefinition(
                id=course.id,
                title=course.title,
                sequence_position=course.sequence_position,
                items=tuple(_to_ref(link.content_item) for link in course.items),
                reward=RewardSpec(stars=course.reward_stars or 0, badge_id=course.reward_badge_id),
            )
            for course in result.scalars().unique()
        ]
        return CurriculumGraph.from_courses(courses)

    @store_operation
    async def get_content_item(self, content_item_id: str) -> ContentItemRef | None:
        item = await self.session.get(ContentItem, content_item_id)
        return _to_ref(item) if item else None

    @store_operation
    async def get_explore_video(self, video_id: str) -> ExploreVideoDefinition | None:
        """Resolve a published explore video with settings defaults applied."""
        video = await self.session.get(ExploreVideo, video_id)
        if video is None or not video.is_published:
            return None

        required_watch_count = await self.required_watch_count(video.video_type)
        return ExploreVideoDefinition(
            id=video.id,
            title=video.title,
            video_type=video.video_type,
            stars=video.stars if video.stars is not None else self.settings.EXPLORE_DEFAULT_STARS,
            completion_threshold=(
                video.completion_threshold
                if video.completion_threshold is not None
                else self.settings.VIDEO_COMPLETION_THRESHOLD
            ),
            required_watch_count=required_watch_count,
            is_replay=video.video_type == self.settings.REPLAY_VIDEO_TYPE,
        )

    async def required_watch_count(self, video_type: str) -> int:
        """Watch events needed before an explore video of this type pays out."""
        rule = await self.session.get(VideoTypeRule, video_type)
        if rule is not None:
            return max(1, rule.required_watch_count)
        return max(1, self.settings.EXPLORE_REQUIRED_WATCH_COUNTS.get(video_type, 1))

    @store_operation
    async def list_explore_video_ids(self, video_type: str) -> list[str]:
        result = await self.session.execute(
            select(ExploreVideo.id)
            .where(ExploreVideo.video_type == video_type, ExploreVideo.is_published.is_(True))
            .order_by(ExploreVideo.id)
        )
        return list(result.scalars())
