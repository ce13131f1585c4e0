"""Child stats API endpoints."""

from fastapi import APIRouter

from starpath.database.session import DbSession

from .schemas import ChildStatsResponse
from .service import ChildStatsProjection


router = APIRouter(prefix="/api/v1/children", tags=["stats"])


@router.get("/{child_id}/stats")
async def get_child_stats(child_id: str, session: DbSession) -> ChildStatsResponse:
    """Get the child's star and badge totals."""
    return await ChildStatsProjection(session).get_stats(child_id)
