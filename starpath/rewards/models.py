"""Reward ledger model.

Append-only. The unique constraint on (child_id, subject_id, reward_type) is
the only mutual exclusion the engine needs: a row's existence means the reward
was given.
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from starpath.database.base import Base, utcnow


class RewardLedgerEntry(Base):
    """One star or badge grant."""

    __tablename__ = "reward_ledger"
    __table_args__ = (
        UniqueConstraint("child_id", "subject_id", "reward_type", name="uq_reward_ledger_grant"),
        Index("ix_reward_ledger_child_category", "child_id", "category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    child_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # content item id, explore video id or course id
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    badge_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        """Return string representation of the ledger entry."""
        return (
            f"<RewardLedgerEntry(child_id={self.child_id}, subject_id={self.subject_id}, "
            f"reward_type={self.reward_type}, amount={self.amount})>"
        )


class BadgeRule(Base):
    """Authored badge earned by reaching a star total.

    Rules without a ``star_category`` count every star (level and milestone
    badges); the others count only stars of that category, e.g. ``book`` or
    an explore video type.
    """

    __tablename__ = "badge_rules"
    __table_args__ = (CheckConstraint("threshold > 0", name="threshold_positive"),)

    badge_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    star_category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
