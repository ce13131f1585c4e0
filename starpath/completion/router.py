"""Completion signal API endpoints."""

import logging

from fastapi import APIRouter, Depends

from starpath.database.session import DbSession
from starpath.dependencies import Moderation
from starpath.middleware.security import event_route_limit

from .schemas import CompletionOutcome, CompletionSignal
from .service import ContentCompletionService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/children", tags=["completions"])


@router.post("/{child_id}/completions", dependencies=[Depends(event_route_limit)])
async def submit_completion(
    child_id: str,
    signal: CompletionSignal,
    session: DbSession,
    moderation: Moderation,
) -> CompletionOutcome:
    """Submit a completion signal for a content item of a course.

    ``reward_granted`` is true only the first time a reward is earned.
    """
    service = ContentCompletionService(session, moderation=moderation)
    return await service.submit_completion(child_id, signal)
