"""Per-child stats projection, derived from reward ledger grants."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from starpath.database.base import Base, utcnow


class ChildStats(Base):
    __tablename__ = "child_stats"

    child_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_badges: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class ChildBadge(Base):
    __tablename__ = "child_badges"

    child_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    badge_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
