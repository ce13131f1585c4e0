"""In-memory view of the curriculum as read from the authoring store.

A graph is built per operation and discarded afterwards; nothing here is
cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ContentKind(StrEnum):
    """Kinds of content a course can require."""

    ACTIVITY = "activity"
    BOOK = "book"
    VIDEO = "video"
    AUDIO_ASSIGNMENT = "audio_assignment"


@dataclass(frozen=True)
class ContentItemRef:
    """A content item and the parameters of its completion rule."""

    id: str
    kind: ContentKind
    title: str = ""
    stars: int = 0
    required_count: int | None = None
    completion_threshold: float | None = None


@dataclass(frozen=True)
class RewardSpec:
    stars: int = 0
    badge_id: str | None = None


@dataclass(frozen=True)
class CourseDefinition:
    id: str
    title: str
    sequence_position: int
    items: tuple[ContentItemRef, ...] = ()
    reward: RewardSpec = field(default_factory=RewardSpec)

    @property
    def required_ids(self) -> frozenset[str]:
        return frozenset(item.id for item in self.items)

    def item(self, content_item_id: str) -> ContentItemRef | None:
        for item in self.items:
            if item.id == content_item_id:
                return item
        return None


@dataclass(frozen=True)
class CurriculumGraph:
    """Courses ordered by ascending sequence rank."""

    courses: tuple[CourseDefinition, ...] = ()

    @classmethod
    def from_courses(cls, courses: list[CourseDefinition]) -> CurriculumGraph:
        ordered = sorted(courses, key=lambda c: c.sequence_position)
        positions = [c.sequence_position for c in ordered]
        if len(set(positions)) != len(positions):
            msg = "Course sequence positions must be unique"
            raise ValueError(msg)
        return cls(courses=tuple(ordered))

    def course(self, course_id: str) -> CourseDefinition | None:
        for course in self.courses:
            if course.id == course_id:
                return course
        return None

    def rank(self, course_id: str) -> int:
        """Zero-based rank of a course; raw sequence positions may have gaps."""
        for index, course in enumerate(self.courses):
            if course.id == course_id:
                return index
        raise KeyError(course_id)

    def courses_containing(self, content_item_id: str) -> list[CourseDefinition]:
        return [course for course in self.courses if content_item_id in course.required_ids]

    def item(self, content_item_id: str) -> ContentItemRef | None:
        for course in self.courses:
            found = course.item(content_item_id)
            if found is not None:
                return found
        return None


@dataclass(frozen=True)
class ExploreVideoDefinition:
    """Explore video with its reward parameters resolved."""

    id: str
    title: str
    video_type: str
    stars: int
    completion_threshold: float
    required_watch_count: int
    is_replay: bool
