"""Default child profile store adapter.

Applies stats deltas to the ``child_stats`` / ``child_badges`` projection.
It runs on the ledger's session, so a delta commits or rolls back together
with the grant that produced it.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.database.dialect import conflict_insert, store_operation
from starpath.rewards.schemas import StatsDelta
from starpath.stats.models import ChildBadge, ChildStats
from starpath.stats.schemas import ChildStatsResponse


logger = logging.getLogger(__name__)


class ChildStatsProjection:
    """Stats sink writing to the local projection tables. Does not commit."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def apply_stats_delta(self, child_id: str, delta: StatsDelta) -> None:
        now = datetime.now(UTC)
        badge_added = 0

        if delta.badge_id:
            badge_stmt = (
                conflict_insert(self.session, ChildBadge.__table__)
                .values(child_id=child_id, badge_id=delta.badge_id, awarded_at=now)
                .on_conflict_do_nothing(index_elements=["child_id", "badge_id"])
                .returning(ChildBadge.__table__.c.badge_id)
            )
            result = await self.session.execute(badge_stmt)
            badge_added = 1 if result.first() is not None else 0

        if not delta.stars_delta and not badge_added:
            return

        table = ChildStats.__table__
        insert_stmt = conflict_insert(self.session, table).values(
            child_id=child_id,
            total_stars=delta.stars_delta,
            total_badges=badge_added,
            updated_at=now,
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["child_id"],
            set_={
                "total_stars": table.c.total_stars + insert_stmt.excluded.total_stars,
                "total_badges": table.c.total_badges + insert_stmt.excluded.total_badges,
                "updated_at": now,
            },
        )
        await self.session.execute(upsert_stmt)
        logger.info(f"Applied stats delta for child {child_id}: +{delta.stars_delta} stars, +{badge_added} badges")

    @store_operation
    async def get_stats(self, child_id: str) -> ChildStatsResponse:
        result = await self.session.execute(
            select(ChildStats).where(ChildStats.child_id == child_id).execution_options(populate_existing=True)
        )
        stats = result.scalar_one_or_none()
        badges = await self.session.execute(
            select(ChildBadge.badge_id).where(ChildBadge.child_id == child_id).order_by(ChildBadge.awarded_at)
        )
        if stats is None:
            return ChildStatsResponse(child_id=child_id)
        return ChildStatsResponse(
            child_id=child_id,
            total_stars=stats.total_stars,
            total_badges=stats.total_badges,
            badges=list(badges.scalars()),
        )
