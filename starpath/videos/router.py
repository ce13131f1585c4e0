"""Watch tracking API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from starpath.completion.service import ContentCompletionService
from starpath.database.session import DbSession
from starpath.dependencies import Moderation
from starpath.middleware.security import admin_route_limit, event_route_limit

from .schemas import VideoTypeProgress, WatchEventRequest, WatchListResponse, WatchResetResult, WatchResult, WatchStatus
from .service import WatchTracker


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/children", tags=["watches"])


def _tracker(session: DbSession, moderation: Moderation) -> WatchTracker:
    return WatchTracker(session, completion=ContentCompletionService(session, moderation=moderation))


Tracker = Annotated[WatchTracker, Depends(_tracker)]


@router.post("/{child_id}/watches", dependencies=[Depends(event_route_limit)])
async def record_watch(child_id: str, event: WatchEventRequest, tracker: Tracker) -> WatchResult:
    """Record a watch event for a curriculum or explore video."""
    return await tracker.record_watch(child_id, event.content_item_id, event.context, event.completion_percentage)


@router.get("/{child_id}/watches")
async def list_watches(
    child_id: str,
    tracker: Tracker,
    context: Annotated[str | None, Query(description="curriculum or explore")] = None,
) -> WatchListResponse:
    """List the child's watch records, most recent first."""
    return WatchListResponse(records=await tracker.list_watches(child_id, context))


@router.get("/{child_id}/watches/{context}/{content_item_id}")
async def get_watch_status(child_id: str, context: str, content_item_id: str, tracker: Tracker) -> WatchStatus:
    """Get watch count, watched flag and whether stars were awarded."""
    return await tracker.get_watch_status(child_id, content_item_id, context)


@router.delete("/{child_id}/watches/{context}/{content_item_id}", dependencies=[Depends(admin_route_limit)])
async def reset_watch(child_id: str, context: str, content_item_id: str, tracker: Tracker) -> WatchResetResult:
    """Administrative reset so the child can earn the watch reward again."""
    return await tracker.reset_watch(child_id, content_item_id, context)


@router.get("/{child_id}/explore/{video_type}/progress")
async def get_video_type_progress(child_id: str, video_type: str, tracker: Tracker) -> VideoTypeProgress:
    """Viewed videos and stars earned for one explore video type."""
    return await tracker.video_type_progress(child_id, video_type)
