"""Reward ledger API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from starpath.database.session import DbSession

from .schemas import LedgerHistoryResponse, StarTotalResponse
from .service import RewardLedger


router = APIRouter(prefix="/api/v1/children", tags=["rewards"])


@router.get("/{child_id}/rewards/stars")
async def get_total_stars(
    child_id: str,
    session: DbSession,
    category: Annotated[str | None, Query(description="Content kind, explore video type or 'course'")] = None,
) -> StarTotalResponse:
    """Total stars earned, optionally for one category."""
    ledger = RewardLedger(session)
    total = await ledger.total_stars(child_id, category)
    return StarTotalResponse(child_id=child_id, category=category, total_stars=total)


@router.get("/{child_id}/rewards")
async def list_rewards(child_id: str, session: DbSession) -> LedgerHistoryResponse:
    """Every grant recorded for the child, newest first."""
    ledger = RewardLedger(session)
    return LedgerHistoryResponse(entries=await ledger.list_entries(child_id))
