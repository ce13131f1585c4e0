"""Schemas for the reward ledger."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RewardType(StrEnum):
    ITEM_STAR = "item-star"
    COURSE_STAR = "course-star"
    COURSE_BADGE = "course-badge"
    EXPLORE_STAR = "explore-star"
    THRESHOLD_BADGE = "threshold-badge"


class RewardSource(StrEnum):
    """What caused a grant. Watch-sourced grants are removed by a watch reset."""

    CONTENT_COMPLETION = "content_completion"
    COURSE_COMPLETION = "course_completion"
    CURRICULUM_WATCH = "curriculum_watch"
    EXPLORE_WATCH = "explore_watch"
    STAR_THRESHOLD = "star_threshold"


class StatsDelta(BaseModel):
    """Change to apply to a child's profile stats."""

    stars_delta: int = 0
    badge_id: str | None = None


class LedgerEntry(BaseModel):
    """A persisted grant."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    child_id: str
    subject_id: str
    reward_type: RewardType
    amount: int
    badge_id: str | None = None
    source: RewardSource
    category: str | None = None
    granted_at: datetime


class GrantResult(BaseModel):
    """Outcome of a grant attempt.

    ``granted`` is False on the normal "already earned" path; ``entry`` then
    holds the existing grant.
    """

    granted: bool
    entry: LedgerEntry | None = None
    # Threshold badges this grant unlocked
    badges: list[LedgerEntry] = []


class CourseGrantResult(BaseModel):
    """Stars and badge are granted independently."""

    stars: GrantResult | None = None
    badge: GrantResult | None = None

    @computed_field
    @property
    def granted(self) -> bool:
        return bool((self.stars and self.stars.granted) or (self.badge and self.badge.granted))


class StarTotalResponse(BaseModel):
    child_id: str
    category: str | None = None
    total_stars: int = Field(0, ge=0)


class LedgerHistoryResponse(BaseModel):
    entries: list[LedgerEntry]
