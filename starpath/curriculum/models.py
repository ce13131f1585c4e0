"""SQLAlchemy models for the content authoring store.

These tables are written by the authoring subsystem. The progress engine only
reads them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from starpath.database.base import Base, utcnow


class Course(Base):
    """An ordered curriculum unit."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # Unique and strictly increasing; gaps are allowed, ordering uses rank
    sequence_position: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    reward_stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_badge_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    items: Mapped[list[CourseItem]] = relationship(
        "CourseItem",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseItem.position",
    )


class ContentItem(Base):
    """A single unit of learning material."""

    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    # Book: distinct completed readings needed
    required_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Video: completion percentage needed
    completion_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Item-level star reward, 0 for none
    stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CourseItem(Base):
    """Required content item of a course, in display order."""

    __tablename__ = "course_items"

    course_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("courses.id", ondelete="CASCADE"),
        primary_key=True,
    )
    content_item_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("content_items.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    course: Mapped[Course] = relationship("Course", back_populates="items")
    content_item: Mapped[ContentItem] = relationship("ContentItem", lazy="joined")


class ExploreVideo(Base):
    """Freestanding discovery video shown outside the curriculum."""

    __tablename__ = "explore_videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    video_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    stars: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completion_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class VideoTypeRule(Base):
    """Per explore video type reward parameters."""

    __tablename__ = "video_type_rules"

    video_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    required_watch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
