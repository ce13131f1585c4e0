"""Progress models for tracking course completion per child."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from starpath.database.base import Base, TimestampMixin, utcnow


class CourseProgress(TimestampMixin, Base):
    """Status of one course for one child. Created on first interaction, never deleted."""

    __tablename__ = "course_progress"
    __table_args__ = (
        UniqueConstraint("child_id", "course_id", name="uq_course_progress_child_course"),
        CheckConstraint(
            "status IN ('locked', 'not_started', 'in_progress', 'completed')",
            name="status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    child_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    # Set exactly once
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the progress."""
        return f"<CourseProgress(child_id={self.child_id}, course_id={self.course_id}, status={self.status})>"


class CourseProgressItem(Base):
    """Completed content item of a course.

    One row per member of the completed set; inserting with ON CONFLICT DO
    NOTHING is the atomic add-to-set.
    """

    __tablename__ = "course_progress_items"

    child_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_item_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
