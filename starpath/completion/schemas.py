"""Schemas for completion signals."""

from typing import Any

from pydantic import BaseModel, Field, computed_field

from starpath.progress.schemas import ProgressRecord
from starpath.rewards.schemas import CourseGrantResult, GrantResult


class CompletionSignal(BaseModel):
    """A completion or interaction event reported by the delivery subsystem."""

    course_id: str = Field(..., min_length=1, max_length=64)
    content_item_id: str = Field(..., min_length=1, max_length=64)
    kind: str = Field(..., description="activity, book, video or audio_assignment")
    submitted: bool = False
    reading_count: int = Field(0, description="Running count of completed readings (books)")
    completion_percentage: float | None = Field(None, allow_inf_nan=False)


class CompletionOutcome(BaseModel):
    """What a completion signal changed.

    ``reward_granted`` is True only when this call issued a new grant, so the
    caller can celebrate exactly once.
    """

    child_id: str
    course_id: str
    content_item_id: str
    complete: bool
    metadata: dict[str, Any] = Field(default_factory=dict)
    progress: ProgressRecord | None = None
    course_completed: bool = False
    item_reward: GrantResult | None = None
    course_reward: CourseGrantResult | None = None

    @computed_field
    @property
    def reward_granted(self) -> bool:
        item_granted = bool(self.item_reward and self.item_reward.granted)
        return item_granted or bool(self.course_reward and self.course_reward.granted)
