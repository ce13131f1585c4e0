"""Schemas for progress API."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from starpath.rewards.schemas import CourseGrantResult


class CourseStatus(StrEnum):
    LOCKED = "locked"
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return STATUS_ORDER.index(self)


STATUS_ORDER = (
    CourseStatus.LOCKED,
    CourseStatus.NOT_STARTED,
    CourseStatus.IN_PROGRESS,
    CourseStatus.COMPLETED,
)


class ProgressRecord(BaseModel):
    """Progress of one child on one course.

    ``persisted`` is False for records synthesized for courses the child has
    not interacted with yet.
    """

    child_id: str
    course_id: str
    status: CourseStatus
    completed_content_item_ids: list[str] = Field(default_factory=list)
    completed_at: datetime | None = None
    persisted: bool = False


class CourseProgressResponse(ProgressRecord):
    """Schema for a single course's progress."""

    title: str
    sequence_position: int
    required_content_item_ids: list[str]
    progress_percentage: int = Field(0, ge=0, le=100)
    accessible: bool
    blocked_by_course_id: str | None = None


class JourneyEntry(BaseModel):
    """One course in a child's ordered journey."""

    course_id: str
    title: str
    sequence_position: int
    status: CourseStatus
    completed_items: int
    total_items: int
    progress_percentage: int
    completed_at: datetime | None = None


class JourneyResponse(BaseModel):
    child_id: str
    courses: list[JourneyEntry]


class UnlockState(BaseModel):
    course_id: str
    status: CourseStatus


class ContentCompletionOutcome(BaseModel):
    """Result of recording a completed item against a course."""

    record: ProgressRecord
    item_newly_recorded: bool
    course_completed: bool
    course_reward: CourseGrantResult | None = None
