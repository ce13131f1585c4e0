"""Completion policy tests. Policies are pure, so no database is needed."""

import pytest

from starpath.completion.policies import (
    ActivityPolicy,
    AudioAssignmentPolicy,
    BookPolicy,
    CompletionParams,
    InteractionHistory,
    VideoPolicy,
    evaluate,
    get_policy,
    resolve_params,
)
from starpath.config.settings import Settings
from starpath.curriculum.graph import ContentItemRef, ContentKind
from starpath.exceptions import KindMismatchError, ValidationError


PARAMS = CompletionParams(required_count=5, completion_threshold=80.0)


def test_activity_completes_on_submission() -> None:
    policy = ActivityPolicy()
    assert policy.is_complete(InteractionHistory(submitted=True), PARAMS).complete is True
    assert policy.is_complete(InteractionHistory(submitted=False), PARAMS).complete is False


@pytest.mark.parametrize(("count", "complete", "remaining"), [(0, False, 5), (4, False, 1), (5, True, 0), (9, True, 0)])
def test_book_threshold(count: int, complete: bool, remaining: int) -> None:
    result = BookPolicy().is_complete(InteractionHistory(reading_count=count), PARAMS)

    assert result.complete is complete
    assert result.metadata["readings_remaining"] == remaining


def test_book_rejects_negative_count() -> None:
    with pytest.raises(ValidationError):
        BookPolicy().is_complete(InteractionHistory(reading_count=-1), PARAMS)


@pytest.mark.parametrize(("percentage", "complete"), [(None, False), (79.9, False), (80.0, True), (100.0, True)])
def test_video_threshold(percentage: float | None, complete: bool) -> None:
    result = VideoPolicy().is_complete(InteractionHistory(completion_percentage=percentage), PARAMS)
    assert result.complete is complete


def test_audio_submitted_but_unreviewed_is_not_complete() -> None:
    policy = AudioAssignmentPolicy()

    missing = policy.is_complete(InteractionHistory(submitted=False, approved=False), PARAMS)
    pending = policy.is_complete(InteractionHistory(submitted=True, approved=False), PARAMS)
    approved = policy.is_complete(InteractionHistory(submitted=True, approved=True), PARAMS)

    assert (missing.complete, missing.metadata["review_status"]) == (False, "not_submitted")
    assert (pending.complete, pending.metadata["review_status"]) == (False, "pending")
    assert (approved.complete, approved.metadata["review_status"]) == (True, "approved")


def test_unknown_kind_is_a_validation_error() -> None:
    with pytest.raises(ValidationError, match="Unknown content kind"):
        get_policy("podcast")


def test_evaluate_rejects_kind_mismatch() -> None:
    item = ContentItemRef(id="B1", kind=ContentKind.BOOK)

    with pytest.raises(KindMismatchError) as exc_info:
        evaluate(item, "video", InteractionHistory(completion_percentage=100), Settings())

    assert exc_info.value.code == "kind-mismatch"
    assert isinstance(exc_info.value, ValidationError)


def test_authoring_parameters_override_settings() -> None:
    settings = Settings(BOOK_REQUIRED_READING_COUNT=5, VIDEO_COMPLETION_THRESHOLD=80.0)

    defaults = resolve_params(ContentItemRef(id="x", kind=ContentKind.BOOK), settings)
    overridden = resolve_params(
        ContentItemRef(id="y", kind=ContentKind.VIDEO, required_count=3, completion_threshold=50.0), settings
    )

    assert (defaults.required_count, defaults.completion_threshold) == (5, 80.0)
    assert (overridden.required_count, overridden.completion_threshold) == (3, 50.0)


def test_evaluate_uses_default_book_threshold() -> None:
    item = ContentItemRef(id="B1", kind=ContentKind.BOOK)
    settings = Settings()

    assert evaluate(item, "book", InteractionHistory(reading_count=4), settings).complete is False
    assert evaluate(item, "book", InteractionHistory(reading_count=5), settings).complete is True
