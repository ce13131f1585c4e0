"""Course progress API endpoints."""

import logging

from fastapi import APIRouter

from starpath.database.session import DbSession

from .schemas import CourseProgressResponse, JourneyResponse
from .service import ProgressTracker


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/children", tags=["progress"])


@router.get("/{child_id}/journey")
async def get_child_journey(child_id: str, session: DbSession) -> JourneyResponse:
    """Get every course in curriculum order with the child's status."""
    tracker = ProgressTracker(session)
    return await tracker.get_child_journey(child_id)


@router.get("/{child_id}/courses/{course_id}/progress")
async def get_course_progress(child_id: str, course_id: str, session: DbSession) -> CourseProgressResponse:
    """Get the child's progress on a single course."""
    tracker = ProgressTracker(session)
    return await tracker.get_course_progress(child_id, course_id)
