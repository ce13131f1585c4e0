"""Completion signals of every kind flowing into progress and rewards."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.completion.schemas import CompletionSignal
from starpath.completion.service import ContentCompletionService
from starpath.curriculum.models import ContentItem
from starpath.exceptions import KindMismatchError, NotApplicableError, ValidationError
from starpath.progress.schemas import CourseStatus
from starpath.progress.service import ProgressTracker
from starpath.rewards.schemas import RewardType
from starpath.rewards.service import RewardLedger
from tests.fixtures.curriculum import add_content_items, add_course, seed_journey


def _signal(course_id: str, item_id: str, kind: str, **kwargs) -> CompletionSignal:
    return CompletionSignal(course_id=course_id, content_item_id=item_id, kind=kind, **kwargs)


async def _finish_first_course(service: ContentCompletionService, child_id: str) -> None:
    await service.submit_completion(child_id, _signal("C1", "A1", "activity", submitted=True))
    await service.submit_completion(child_id, _signal("C1", "A2", "activity", submitted=True))


@pytest.mark.asyncio
async def test_activity_completion_grants_item_and_course_rewards(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)

    first = await service.submit_completion("kid-x", _signal("C1", "A1", "activity", submitted=True))
    assert first.complete is True
    assert first.item_reward is None  # A1 carries no item stars
    assert first.reward_granted is False
    assert first.progress.status == CourseStatus.IN_PROGRESS

    second = await service.submit_completion("kid-x", _signal("C1", "A2", "activity", submitted=True))
    assert second.item_reward.granted is True
    assert second.course_completed is True
    assert second.course_reward.granted is True
    assert second.reward_granted is True

    replay = await service.submit_completion("kid-x", _signal("C1", "A2", "activity", submitted=True))
    assert replay.complete is True
    assert replay.reward_granted is False
    assert await RewardLedger(db_session).total_stars("kid-x") == 55


@pytest.mark.asyncio
async def test_incomplete_signal_changes_nothing(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)

    outcome = await service.submit_completion("kid-x", _signal("C1", "A1", "activity", submitted=False))

    assert outcome.complete is False
    assert outcome.progress.persisted is False
    assert outcome.progress.completed_content_item_ids == []


@pytest.mark.asyncio
async def test_book_completes_on_fifth_reading_and_finishes_course(db_session: AsyncSession, moderation) -> None:
    await add_content_items(db_session, ContentItem(id="BOOK", kind="book", title="Counting Sheep"))
    await add_course(db_session, "READ", 1, ["BOOK"], reward_stars=25)
    service = ContentCompletionService(db_session, moderation=moderation)

    for count in range(1, 5):
        outcome = await service.submit_completion("kid-b", _signal("READ", "BOOK", "book", reading_count=count))
        assert outcome.complete is False
        assert outcome.metadata["readings_remaining"] == 5 - count

    fifth = await service.submit_completion("kid-b", _signal("READ", "BOOK", "book", reading_count=5))

    assert fifth.complete is True
    assert fifth.course_completed is True
    assert fifth.progress.status == CourseStatus.COMPLETED
    assert fifth.course_reward.stars.entry.amount == 25


@pytest.mark.asyncio
async def test_audio_assignment_needs_approval(db_session: AsyncSession) -> None:
    await add_content_items(db_session, ContentItem(id="SING", kind="audio_assignment", stars=4))
    await add_course(db_session, "MUSIC", 1, ["SING"], reward_stars=10)
    gateway = AsyncMock()
    gateway.is_submission_approved = AsyncMock(return_value=False)
    service = ContentCompletionService(db_session, moderation=gateway)

    pending = await service.submit_completion("kid-a", _signal("MUSIC", "SING", "audio_assignment", submitted=True))
    assert pending.complete is False
    assert pending.metadata["review_status"] == "pending"

    gateway.is_submission_approved.return_value = True
    approved = await service.submit_completion("kid-a", _signal("MUSIC", "SING", "audio_assignment", submitted=True))

    assert approved.complete is True
    assert approved.course_completed is True
    assert approved.item_reward.granted is True
    gateway.is_submission_approved.assert_awaited_with("kid-a", "SING")


@pytest.mark.asyncio
async def test_moderation_is_not_consulted_for_other_kinds(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)

    await service.submit_completion("kid-x", _signal("C1", "A1", "activity", submitted=True))

    moderation.is_submission_approved.assert_not_awaited()


@pytest.mark.asyncio
async def test_kind_mismatch_and_unknown_kind(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)

    with pytest.raises(KindMismatchError):
        await service.submit_completion("kid-x", _signal("C1", "A1", "video", completion_percentage=100))
    with pytest.raises(ValidationError, match="Unknown content kind"):
        await service.submit_completion("kid-x", _signal("C1", "A1", "podcast"))

    record = await ProgressTracker(db_session).get_record("kid-x", "C1")
    assert record.persisted is False


@pytest.mark.asyncio
async def test_locked_course_and_foreign_item_are_not_applicable(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)

    with pytest.raises(NotApplicableError):
        await service.submit_completion("kid-x", _signal("C2", "B1", "book", reading_count=5))
    with pytest.raises(NotApplicableError):
        await service.submit_completion("kid-x", _signal("C1", "V1", "video", completion_percentage=100))

    assert await RewardLedger(db_session).list_entries("kid-x") == []


@pytest.mark.asyncio
async def test_finishing_the_journey_awards_badge(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)
    await _finish_first_course(service, "kid-x")

    await service.submit_completion("kid-x", _signal("C2", "B1", "book", reading_count=5))
    last = await service.submit_completion("kid-x", _signal("C2", "V1", "video", completion_percentage=85))

    assert last.course_completed is True
    assert last.course_reward.badge.granted is True
    ledger = RewardLedger(db_session)
    assert await ledger.has_granted("kid-x", "C2", RewardType.COURSE_BADGE) is True
    assert await ledger.has_granted("kid-x", "V1", RewardType.ITEM_STAR) is True


@pytest.mark.asyncio
async def test_completion_signal_loads_progress_once(db_session: AsyncSession, moderation) -> None:
    await seed_journey(db_session)
    service = ContentCompletionService(db_session, moderation=moderation)
    loads: list[str] = []
    load_stored = service.progress.load_stored

    async def counting_load(child_id: str):
        loads.append(child_id)
        return await load_stored(child_id)

    service.progress.load_stored = counting_load

    outcome = await service.submit_completion("kid-x", _signal("C1", "A1", "activity", submitted=True))

    assert outcome.progress.status == CourseStatus.IN_PROGRESS
    assert loads == ["kid-x"]


@pytest.mark.asyncio
async def test_direct_recording_still_checks_access(db_session: AsyncSession) -> None:
    await seed_journey(db_session)

    with pytest.raises(NotApplicableError):
        await ProgressTracker(db_session).record_content_completion("kid-x", "C2", "B1")
