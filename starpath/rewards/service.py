"""Business logic for the reward ledger.

Every grant is a single conditional insert keyed by (child, subject, reward
type). Finding an existing row, either through ``ON CONFLICT DO NOTHING`` or
through a uniqueness violation, is the "already granted" path and never an
error. Stats deltas are emitted only for rows this call actually inserted.

Badges come from two places: a course's own badge, and authored star
thresholds (``badge_rules``) checked after every star grant.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import Row, delete, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from starpath.core.interfaces import StatsSink
from starpath.database.dialect import conflict_insert, store_operation
from starpath.exceptions import ValidationError
from starpath.rewards.models import BadgeRule, RewardLedgerEntry
from starpath.rewards.schemas import (
    CourseGrantResult,
    GrantResult,
    LedgerEntry,
    RewardSource,
    RewardType,
    StatsDelta,
)
from starpath.stats.service import ChildStatsProjection


logger = logging.getLogger(__name__)

STAR_REWARD_TYPES = (RewardType.ITEM_STAR.value, RewardType.COURSE_STAR.value, RewardType.EXPLORE_STAR.value)


class RewardLedger:
    """Append-only, idempotent record of star and badge grants."""

    def __init__(self, session: AsyncSession, stats_sink: StatsSink | None = None) -> None:
        self.session = session
        self.stats_sink = stats_sink or ChildStatsProjection(session)

    async def grant_item_reward(
        self,
        child_id: str,
        content_item_id: str,
        amount: int,
        *,
        source: RewardSource = RewardSource.CONTENT_COMPLETION,
        category: str | None = None,
    ) -> GrantResult:
        """Grant item stars once per (child, item)."""
        if amount <= 0:
            msg = f"Reward amount must be positive, got {amount}"
            raise ValidationError(msg)

        result = await self._grant(
            child_id,
            content_item_id,
            RewardType.ITEM_STAR,
            amount=amount,
            source=source,
            category=category,
            delta=StatsDelta(stars_delta=amount),
        )
        result.badges = await self.award_threshold_badges(child_id, category)
        return result

    async def grant_explore_reward(self, child_id: str, video_id: str, amount: int, video_type: str) -> GrantResult:
        """Grant explore video stars once per (child, video).

        Explore videos have their own reward type, so an explore video sharing
        an id with a curriculum item is rewarded independently.
        """
        if amount <= 0:
            msg = f"Reward amount must be positive, got {amount}"
            raise ValidationError(msg)

        result = await self._grant(
            child_id,
            video_id,
            RewardType.EXPLORE_STAR,
            amount=amount,
            source=RewardSource.EXPLORE_WATCH,
            category=video_type,
            delta=StatsDelta(stars_delta=amount),
        )
        result.badges = await self.award_threshold_badges(child_id, video_type)
        return result

    async def grant_course_reward(
        self,
        child_id: str,
        course_id: str,
        star_amount: int,
        badge_id: str | None = None,
    ) -> CourseGrantResult:
        """Grant course stars and badge as two separately idempotent grants.

        A retry that already gave the stars but failed before the badge still
        grants the badge without re-granting the stars.
        """
        if star_amount < 0:
            msg = f"Course star amount cannot be negative, got {star_amount}"
            raise ValidationError(msg)

        stars = None
        if star_amount > 0:
            stars = await self._grant(
                child_id,
                course_id,
                RewardType.COURSE_STAR,
                amount=star_amount,
                source=RewardSource.COURSE_COMPLETION,
                category="course",
                delta=StatsDelta(stars_delta=star_amount),
            )
            stars.badges = await self.award_threshold_badges(child_id, "course")

        badge = None
        if badge_id:
            badge = await self._grant(
                child_id,
                course_id,
                RewardType.COURSE_BADGE,
                amount=1,
                badge_id=badge_id,
                source=RewardSource.COURSE_COMPLETION,
                category="course",
                delta=StatsDelta(badge_id=badge_id),
            )

        return CourseGrantResult(stars=stars, badge=badge)

    @store_operation
    async def has_granted(self, child_id: str, subject_id: str, reward_type: RewardType) -> bool:
        """Pure query; grants stay safe without calling this first."""
        result = await self.session.execute(
            select(
                exists().where(
                    RewardLedgerEntry.child_id == child_id,
                    RewardLedgerEntry.subject_id == subject_id,
                    RewardLedgerEntry.reward_type == reward_type.value,
                )
            )
        )
        return bool(result.scalar())

    @store_operation
    async def get_entry(self, child_id: str, subject_id: str, reward_type: RewardType) -> LedgerEntry | None:
        result = await self.session.execute(
            select(RewardLedgerEntry.__table__).where(
                RewardLedgerEntry.child_id == child_id,
                RewardLedgerEntry.subject_id == subject_id,
                RewardLedgerEntry.reward_type == reward_type.value,
            )
        )
        row = result.first()
        return LedgerEntry.model_validate(row._mapping) if row else None

    @store_operation
    async def revoke(
        self,
        child_id: str,
        subject_id: str,
        reward_type: RewardType,
        *,
        source: RewardSource,
    ) -> list[LedgerEntry]:
        """Remove the grant for a key only if it came from ``source``.

        Used by the administrative watch reset so the reward can be earned
        again. Stars already applied to the child's stats are not clawed back.
        """
        table = RewardLedgerEntry.__table__
        result = await self.session.execute(
            delete(table)
            .where(
                table.c.child_id == child_id,
                table.c.subject_id == subject_id,
                table.c.reward_type == reward_type.value,
                table.c.source == source.value,
            )
            .returning(*table.c)
        )
        removed = [LedgerEntry.model_validate(row._mapping) for row in result]
        await self.session.commit()

        for entry in removed:
            logger.info(
                f"Revoked {entry.reward_type} for child {child_id}, subject {subject_id} (source={source.value})"
            )
        return removed

    @store_operation
    async def total_stars(self, child_id: str, category: str | None = None) -> int:
        """Sum of star grants, optionally restricted to one category."""
        query = select(func.coalesce(func.sum(RewardLedgerEntry.amount), 0)).where(
            RewardLedgerEntry.child_id == child_id,
            RewardLedgerEntry.reward_type.in_(STAR_REWARD_TYPES),
        )
        if category is not None:
            query = query.where(RewardLedgerEntry.category == category)

        result = await self.session.execute(query)
        return int(result.scalar_one())

    async def award_threshold_badges(self, child_id: str, category: str | None = None) -> list[LedgerEntry]:
        """Grant every active star-threshold badge the child now qualifies for.

        Runs after each star grant, including the already-granted path, so a
        retry still catches up on a badge whose grant failed. Returns only the
        badges granted by this call.
        """
        rules = await self._badge_rules(category)
        totals: dict[str | None, int] = {}
        awarded = []
        for rule in rules:
            if rule.star_category not in totals:
                totals[rule.star_category] = await self.total_stars(child_id, rule.star_category)
            if totals[rule.star_category] < rule.threshold:
                continue

            result = await self._grant(
                child_id,
                rule.badge_id,
                RewardType.THRESHOLD_BADGE,
                amount=1,
                badge_id=rule.badge_id,
                source=RewardSource.STAR_THRESHOLD,
                category=rule.star_category,
                delta=StatsDelta(badge_id=rule.badge_id),
            )
            if result.granted:
                awarded.append(result.entry)
        return awarded

    @store_operation
    async def _badge_rules(self, category: str | None) -> list[Row]:
        """Active rules affected by stars of ``category``; uncategorized rules always apply."""
        applies = BadgeRule.star_category.is_(None)
        if category is not None:
            applies = or_(applies, BadgeRule.star_category == category)
        result = await self.session.execute(
            select(BadgeRule.__table__)
            .where(BadgeRule.is_active.is_(True), applies)
            .order_by(BadgeRule.threshold, BadgeRule.badge_id)
        )
        return list(result)

    @store_operation
    async def list_entries(self, child_id: str) -> list[LedgerEntry]:
        result = await self.session.execute(
            select(RewardLedgerEntry.__table__)
            .where(RewardLedgerEntry.child_id == child_id)
            .order_by(RewardLedgerEntry.granted_at.desc(), RewardLedgerEntry.id.desc())
        )
        return [LedgerEntry.model_validate(row._mapping) for row in result]

    @store_operation
    async def _grant(
        self,
        child_id: str,
        subject_id: str,
        reward_type: RewardType,
        *,
        amount: int,
        source: RewardSource,
        delta: StatsDelta,
        category: str | None = None,
        badge_id: str | None = None,
    ) -> GrantResult:
        table = RewardLedgerEntry.__table__
        stmt = (
            conflict_insert(self.session, table)
            .values(
                child_id=child_id,
                subject_id=subject_id,
                reward_type=reward_type.value,
                amount=amount,
                badge_id=badge_id,
                source=source.value,
                category=category,
                granted_at=datetime.now(UTC),
            )
            .on_conflict_do_nothing(index_elements=["child_id", "subject_id", "reward_type"])
            .returning(*table.c)
        )

        try:
            row = (await self.session.execute(stmt)).first()
            if row is not None:
                await self.stats_sink.apply_stats_delta(child_id, delta)
            await self.session.commit()
        except IntegrityError:
            # A concurrent writer won the race between our check and insert
            await self.session.rollback()
            row = None
        except Exception:
            await self.session.rollback()
            raise

        if row is None:
            existing = await self.get_entry(child_id, subject_id, reward_type)
            logger.info(f"{reward_type.value} already granted for child {child_id}, subject {subject_id}")
            return GrantResult(granted=False, entry=existing)

        entry = LedgerEntry.model_validate(row._mapping)
        logger.info(f"Granted {reward_type.value} x{amount} to child {child_id} for subject {subject_id}")
        return GrantResult(granted=True, entry=entry)
