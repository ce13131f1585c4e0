"""Schemas for watch tracking."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from starpath.completion.schemas import CompletionOutcome
from starpath.rewards.schemas import GrantResult, LedgerEntry


class WatchContext(StrEnum):
    CURRICULUM = "curriculum"
    EXPLORE = "explore"


class WatchEventRequest(BaseModel):
    """A single watch event; the percentage is clamped into [0, 100]."""

    content_item_id: str = Field(..., min_length=1, max_length=64)
    context: WatchContext
    completion_percentage: float = Field(..., allow_inf_nan=False)


class WatchRecordSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    child_id: str
    content_item_id: str
    context: WatchContext
    watch_count: int
    last_completion_percentage: float
    first_completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WatchStatus(BaseModel):
    """``stars_awarded`` reflects the reward ledger, never the watch record."""

    child_id: str
    content_item_id: str
    context: WatchContext
    watch_count: int = 0
    is_watched: bool = False
    stars_awarded: bool = False
    last_completion_percentage: float = 0.0
    first_completed_at: datetime | None = None


class WatchResult(BaseModel):
    """Updated watch record plus whatever the watch triggered."""

    record: WatchRecordSchema
    threshold_reached: bool
    first_completion: bool
    reward: GrantResult | None = None
    completions: list[CompletionOutcome] = Field(default_factory=list)
    reward_granted: bool = False


class WatchResetResult(BaseModel):
    child_id: str
    content_item_id: str
    context: WatchContext
    reset: bool
    revoked: list[LedgerEntry] = Field(default_factory=list)


class WatchListResponse(BaseModel):
    records: list[WatchRecordSchema]


class VideoTypeProgress(BaseModel):
    """How much of one explore video type a child has seen."""

    child_id: str
    video_type: str
    total_videos: int
    viewed_videos: int
    total_stars: int
    rewards_enabled: bool
