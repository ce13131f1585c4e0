"""Per-kind completion rules.

Each content kind has one policy exposing ``is_complete(history, params)``.
Policies are pure: the caller gathers the interaction history (including the
moderation verdict for audio assignments) before evaluating.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from starpath.config.settings import Settings, get_settings
from starpath.curriculum.graph import ContentItemRef, ContentKind
from starpath.exceptions import KindMismatchError, ValidationError


@dataclass(frozen=True)
class InteractionHistory:
    """What the delivery subsystem reported about one child and one item."""

    submitted: bool = False
    reading_count: int = 0
    completion_percentage: float | None = None
    approved: bool = False


@dataclass(frozen=True)
class CompletionParams:
    """Resolved rule parameters for one item."""

    required_count: int
    completion_threshold: float


@dataclass(frozen=True)
class CompletionResult:
    complete: bool
    metadata: dict[str, Any] = field(default_factory=dict)


class CompletionPolicy(Protocol):
    kind: ContentKind

    def is_complete(self, history: InteractionHistory, params: CompletionParams) -> CompletionResult: ...


class ActivityPolicy:
    """Complete on a single submitted/auto-completed signal."""

    kind = ContentKind.ACTIVITY

    def is_complete(self, history: InteractionHistory, params: CompletionParams) -> CompletionResult:
        return CompletionResult(complete=history.submitted)


class BookPolicy:
    """Complete once the running count of completed readings reaches the threshold."""

    kind = ContentKind.BOOK

    def is_complete(self, history: InteractionHistory, params: CompletionParams) -> CompletionResult:
        if history.reading_count < 0:
            msg = "Reading count cannot be negative"
            raise ValidationError(msg)
        remaining = max(0, params.required_count - history.reading_count)
        return CompletionResult(
            complete=history.reading_count >= params.required_count,
            metadata={
                "reading_count": history.reading_count,
                "required_reading_count": params.required_count,
                "readings_remaining": remaining,
            },
        )


class VideoPolicy:
    """Complete when a single watch reaches the completion threshold."""

    kind = ContentKind.VIDEO

    def is_complete(self, history: InteractionHistory, params: CompletionParams) -> CompletionResult:
        percentage = history.completion_percentage or 0.0
        return CompletionResult(
            complete=percentage >= params.completion_threshold,
            metadata={
                "completion_percentage": percentage,
                "completion_threshold": params.completion_threshold,
            },
        )


class AudioAssignmentPolicy:
    """Complete only when moderation approved the submission.

    Moderation only says whether a submission is approved, so anything
    submitted and not yet approved is reported as pending.
    """

    kind = ContentKind.AUDIO_ASSIGNMENT

    def is_complete(self, history: InteractionHistory, params: CompletionParams) -> CompletionResult:
        if history.approved:
            review_status = "approved"
        else:
            review_status = "pending" if history.submitted else "not_submitted"
        return CompletionResult(complete=history.approved, metadata={"review_status": review_status})


POLICIES: dict[str, CompletionPolicy] = {
    policy.kind.value: policy
    for policy in (ActivityPolicy(), BookPolicy(), VideoPolicy(), AudioAssignmentPolicy())
}


def get_policy(kind: str) -> CompletionPolicy:
    policy = POLICIES.get(kind)
    if policy is None:
        msg = f"Unknown content kind: {kind}"
        raise ValidationError(msg)
    return policy


def resolve_params(item: ContentItemRef, settings: Settings | None = None) -> CompletionParams:
    """Authoring parameters win; settings provide the defaults."""
    settings = settings or get_settings()
    return CompletionParams(
        required_count=item.required_count or settings.BOOK_REQUIRED_READING_COUNT,
        completion_threshold=(
            item.completion_threshold
            if item.completion_threshold is not None
            else settings.VIDEO_COMPLETION_THRESHOLD
        ),
    )


def evaluate(
    item: ContentItemRef,
    signal_kind: str,
    history: InteractionHistory,
    settings: Settings | None = None,
) -> CompletionResult:
    """Check the signal against the item's kind and run its policy."""
    get_policy(signal_kind)
    if signal_kind != item.kind:
        raise KindMismatchError(item.id, expected=item.kind, received=signal_kind)
    return get_policy(item.kind).is_complete(history, resolve_params(item, settings))
