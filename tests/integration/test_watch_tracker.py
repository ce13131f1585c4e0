"""Watch tracking in both contexts, replay exemption and administrative reset."""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.completion.schemas import CompletionSignal
from starpath.completion.service import ContentCompletionService
from starpath.exceptions import KindMismatchError, NotApplicableError, ResourceNotFoundError, ValidationError
from starpath.progress.schemas import CourseStatus
from starpath.progress.service import ProgressTracker
from starpath.rewards.models import RewardLedgerEntry
from starpath.rewards.schemas import RewardType
from starpath.rewards.service import RewardLedger
from starpath.stats.service import ChildStatsProjection
from starpath.videos.service import WatchTracker, clamp_percentage
from tests.fixtures.curriculum import add_explore_video, seed_journey


async def _entries_for(session: AsyncSession, subject_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(RewardLedgerEntry).where(RewardLedgerEntry.subject_id == subject_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_cooking_video_watched_twice(db_session: AsyncSession, moderation) -> None:
    await add_explore_video(db_session, "cook-1", "cooking")
    tracker = WatchTracker(db_session, completion=ContentCompletionService(db_session, moderation=moderation))

    first = await tracker.record_watch("kid-x", "cook-1", "explore", 100)
    status = await tracker.get_watch_status("kid-x", "cook-1", "explore")
    assert status.is_watched is True
    assert status.stars_awarded is True
    assert first.reward_granted is True
    assert first.reward.entry.amount == 10  # default explore stars

    second = await tracker.record_watch("kid-x", "cook-1", "explore", 100)

    assert second.record.watch_count == 2
    assert second.reward_granted is False
    assert second.first_completion is False
    assert await _entries_for(db_session, "cook-1") == 1
    assert (await ChildStatsProjection(db_session).get_stats("kid-x")).total_stars == 10


@pytest.mark.asyncio
async def test_replay_videos_never_reward(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "replay-1", "replay", stars=10)
    tracker = WatchTracker(db_session)

    for percentage in (100, 100, 50, 100):
        result = await tracker.record_watch("kid-x", "replay-1", "explore", percentage)
        assert result.reward is None

    status = await tracker.get_watch_status("kid-x", "replay-1", "explore")
    progress = await tracker.video_type_progress("kid-x", "replay")
    assert (status.watch_count, status.is_watched, status.stars_awarded) == (4, True, False)
    assert await _entries_for(db_session, "replay-1") == 0
    assert progress.total_stars == 0
    assert progress.rewards_enabled is False


@pytest.mark.asyncio
async def test_repeat_view_threshold(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "yoga-1", "yoga", stars=15, required_watch_count=3)
    tracker = WatchTracker(db_session)

    first = await tracker.record_watch("kid-x", "yoga-1", "explore", 100)
    second = await tracker.record_watch("kid-x", "yoga-1", "explore", 20)
    third = await tracker.record_watch("kid-x", "yoga-1", "explore", 30)

    assert first.reward is None
    assert second.reward is None
    assert third.reward.granted is True
    assert third.reward.entry.category == "yoga"


@pytest.mark.asyncio
async def test_watches_below_threshold_count_but_do_not_reward(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "cook-2", "cooking")
    tracker = WatchTracker(db_session)

    result = await tracker.record_watch("kid-x", "cook-2", "explore", 40)
    status = await tracker.get_watch_status("kid-x", "cook-2", "explore")

    assert result.threshold_reached is False
    assert result.record.first_completed_at is None
    assert (status.watch_count, status.is_watched, status.stars_awarded) == (1, True, False)


@pytest.mark.asyncio
async def test_percentage_is_clamped(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "cook-3", "cooking")
    tracker = WatchTracker(db_session)

    high = await tracker.record_watch("kid-x", "cook-3", "explore", 250)
    low = await tracker.record_watch("kid-x", "cook-3", "explore", -20)

    assert high.record.last_completion_percentage == 100.0
    assert high.threshold_reached is True
    assert low.record.last_completion_percentage == 0.0


@pytest.mark.parametrize("value", ["ninety", None, True, float("nan")])
def test_non_numeric_percentage_is_rejected(value: object) -> None:
    with pytest.raises(ValidationError):
        clamp_percentage(value)


@pytest.mark.asyncio
async def test_invalid_input_writes_nothing(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "cook-4", "cooking")
    tracker = WatchTracker(db_session)

    with pytest.raises(ValidationError):
        await tracker.record_watch("kid-x", "cook-4", "explore", "lots")
    with pytest.raises(ValidationError):
        await tracker.record_watch("kid-x", "cook-4", "sideways", 100)
    with pytest.raises(ResourceNotFoundError):
        await tracker.record_watch("kid-x", "missing", "explore", 100)

    assert await tracker.list_watches("kid-x") == []


@pytest.mark.asyncio
async def test_reset_allows_exactly_one_new_grant(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "cook-5", "cooking")
    await add_explore_video(db_session, "cook-6", "cooking")
    tracker = WatchTracker(db_session)
    await tracker.record_watch("kid-x", "cook-5", "explore", 100)
    await tracker.record_watch("kid-x", "cook-6", "explore", 100)
    await RewardLedger(db_session).grant_course_reward("kid-x", "C1", 50)

    reset = await tracker.reset_watch("kid-x", "cook-5", "explore")
    status = await tracker.get_watch_status("kid-x", "cook-5", "explore")

    assert reset.reset is True
    assert [entry.subject_id for entry in reset.revoked] == ["cook-5"]
    assert (status.watch_count, status.is_watched, status.stars_awarded) == (0, False, False)

    regrants = [await tracker.record_watch("kid-x", "cook-5", "explore", 100) for _ in range(3)]

    assert [r.reward_granted for r in regrants] == [True, False, False]
    assert await _entries_for(db_session, "cook-5") == 1
    assert await _entries_for(db_session, "cook-6") == 1
    assert await _entries_for(db_session, "C1") == 1


@pytest.mark.asyncio
async def test_concurrent_explore_watches_count_every_call(session_maker) -> None:
    async with session_maker() as session:
        await add_explore_video(session, "cook-7", "cooking")

    async def watch() -> bool:
        async with session_maker() as session:
            return (await WatchTracker(session).record_watch("kid-c", "cook-7", "explore", 100)).reward_granted

    granted = await asyncio.gather(*(watch() for _ in range(6)))

    async with session_maker() as session:
        status = await WatchTracker(session).get_watch_status("kid-c", "cook-7", "explore")
        assert status.watch_count == 6
        assert await _entries_for(session, "cook-7") == 1
    assert granted.count(True) == 1


@pytest.mark.asyncio
async def test_curriculum_watch_completes_course_item(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    completion = ContentCompletionService(db_session, moderation=moderation)
    tracker = WatchTracker(db_session, completion=completion)
    for item_id in ("A1", "A2"):
        await completion.submit_completion(
            "kid-x", CompletionSignal(course_id="C1", content_item_id=item_id, kind="activity", submitted=True)
        )
    await completion.submit_completion(
        "kid-x", CompletionSignal(course_id="C2", content_item_id="B1", kind="book", reading_count=5)
    )

    partial = await tracker.record_watch("kid-x", "V1", "curriculum", 50)
    assert partial.completions == []

    result = await tracker.record_watch("kid-x", "V1", "curriculum", 90)

    assert result.first_completion is True
    assert result.reward.granted is True
    assert result.reward.entry.source == "curriculum_watch"
    assert [c.course_id for c in result.completions] == ["C2"]
    assert result.completions[0].course_completed is True
    assert result.completions[0].course_reward.badge.granted is True

    progress = await ProgressTracker(db_session).get_course_progress("kid-x", "C2")
    assert progress.status == CourseStatus.COMPLETED


@pytest.mark.asyncio
async def test_curriculum_reset_keeps_course_rewards(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    completion = ContentCompletionService(db_session, moderation=moderation)
    tracker = WatchTracker(db_session, completion=completion)
    for item_id in ("A1", "A2"):
        await completion.submit_completion(
            "kid-x", CompletionSignal(course_id="C1", content_item_id=item_id, kind="activity", submitted=True)
        )
    await completion.submit_completion(
        "kid-x", CompletionSignal(course_id="C2", content_item_id="B1", kind="book", reading_count=5)
    )
    await tracker.record_watch("kid-x", "V1", "curriculum", 100)

    reset = await tracker.reset_watch("kid-x", "V1", "curriculum")

    ledger = RewardLedger(db_session)
    assert [entry.reward_type for entry in reset.revoked] == [RewardType.ITEM_STAR]
    assert await ledger.has_granted("kid-x", "C2", RewardType.COURSE_STAR) is True
    assert await ledger.has_granted("kid-x", "C2", RewardType.COURSE_BADGE) is True
    assert await ledger.has_granted("kid-x", "A2", RewardType.ITEM_STAR) is True
    assert (await ProgressTracker(db_session).get_course_progress("kid-x", "C2")).status == CourseStatus.COMPLETED

    again = await tracker.record_watch("kid-x", "V1", "curriculum", 100)
    assert again.reward.granted is True
    assert again.completions[0].course_reward.granted is False


@pytest.mark.asyncio
async def test_curriculum_watch_rejections(db_session: AsyncSession) -> None:
    await seed_journey(db_session)
    tracker = WatchTracker(db_session)

    with pytest.raises(NotApplicableError):
        await tracker.record_watch("kid-x", "V1", "curriculum", 100)  # C2 still locked
    with pytest.raises(KindMismatchError):
        await tracker.record_watch("kid-x", "A1", "curriculum", 100)
    with pytest.raises(NotApplicableError):
        await tracker.record_watch("kid-x", "cook-1", "curriculum", 100)

    assert await tracker.list_watches("kid-x") == []


@pytest.mark.asyncio
async def test_contexts_are_tracked_independently(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    await add_explore_video(db_session, "A1", "music", stars=2)
    tracker = WatchTracker(db_session)

    await tracker.record_watch("kid-x", "A1", "explore", 10)

    explore = await tracker.get_watch_status("kid-x", "A1", "explore")
    curriculum = await tracker.get_watch_status("kid-x", "A1", "curriculum")
    assert explore.watch_count == 1
    assert curriculum.watch_count == 0
    assert [r.context for r in await tracker.list_watches("kid-x", "explore")] == ["explore"]
    assert await tracker.list_watches("kid-x", "curriculum") == []


@pytest.mark.asyncio
async def test_video_type_progress(db_session: AsyncSession) -> None:
    for video_id in ("cook-a", "cook-b", "cook-c"):
        await add_explore_video(db_session, video_id, "cooking", stars=10)
    await add_explore_video(db_session, "yoga-a", "yoga", stars=10)
    tracker = WatchTracker(db_session)

    await tracker.record_watch("kid-x", "cook-a", "explore", 100)
    await tracker.record_watch("kid-x", "cook-b", "explore", 30)
    await tracker.record_watch("kid-x", "yoga-a", "explore", 100)

    progress = await tracker.video_type_progress("kid-x", "cooking")
    assert (progress.total_videos, progress.viewed_videos, progress.total_stars) == (3, 2, 10)
    assert progress.rewards_enabled is True


@pytest.mark.asyncio
async def test_explore_video_sharing_a_curriculum_id_earns_its_own_stars(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    completion = ContentCompletionService(db_session, moderation=moderation)
    tracker = WatchTracker(db_session, completion=completion)
    for item_id in ("A1", "A2"):
        await completion.submit_completion(
            "kid-x", CompletionSignal(course_id="C1", content_item_id=item_id, kind="activity", submitted=True)
        )
    await add_explore_video(db_session, "A2", "music", stars=2)

    before = await tracker.get_watch_status("kid-x", "A2", "explore")
    assert (before.watch_count, before.stars_awarded) == (0, False)

    result = await tracker.record_watch("kid-x", "A2", "explore", 100)

    assert result.reward_granted is True
    assert result.reward.entry.reward_type == RewardType.EXPLORE_STAR
    assert result.reward.entry.amount == 2
    assert (await tracker.get_watch_status("kid-x", "A2", "explore")).stars_awarded is True
    assert (await tracker.get_watch_status("kid-x", "A2", "curriculum")).stars_awarded is True

    reset = await tracker.reset_watch("kid-x", "A2", "explore")

    assert [entry.reward_type for entry in reset.revoked] == [RewardType.EXPLORE_STAR]
    assert await RewardLedger(db_session).has_granted("kid-x", "A2", RewardType.ITEM_STAR) is True
    assert (await tracker.get_watch_status("kid-x", "A2", "explore")).stars_awarded is False


@pytest.mark.asyncio
async def test_unpublished_explore_video_is_not_watchable(db_session: AsyncSession) -> None:
    await add_explore_video(db_session, "cook-live", "cooking", stars=10)
    await add_explore_video(db_session, "cook-draft", "cooking", stars=10, is_published=False)
    tracker = WatchTracker(db_session)

    with pytest.raises(ResourceNotFoundError):
        await tracker.record_watch("kid-x", "cook-draft", "explore", 100)

    progress = await tracker.video_type_progress("kid-x", "cooking")
    assert await tracker.list_watches("kid-x") == []
    assert await _entries_for(db_session, "cook-draft") == 0
    assert (progress.total_videos, progress.viewed_videos, progress.total_stars) == (1, 0, 0)
