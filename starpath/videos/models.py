"""Watch tracking models."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from starpath.database.base import Base, TimestampMixin


class WatchRecord(TimestampMixin, Base):
    """Watch history of one video for one child in one context.

    Curriculum and explore watches of the same video are tracked independently.
    """

    __tablename__ = "watch_records"
    __table_args__ = (UniqueConstraint("child_id", "content_item_id", "context", name="uq_watch_records_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    child_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    context: Mapped[str] = mapped_column(String(20), nullable=False)
    watch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completion_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    first_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WatchRecord(child_id={self.child_id}, content_item_id={self.content_item_id}, "
            f"context={self.context}, watch_count={self.watch_count})>"
        )
