import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base

from .enums import SectionStatus, section_status_enum


class CourseSection(Base):
    __tablename__ = "course_sections"

    section_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[SectionStatus] = mapped_column(
        section_status_enum, nullable=False, default=SectionStatus.PRIVATE
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    course = relationship("Course", back_populates="sections", lazy="noload")
    lessons = relationship(
        "Lesson",
        back_populates="section",
        order_by="Lesson.sort_order",
        lazy="noload",
        passive_deletes=True,
    )

    __table_args__ = (
        # Turns a racing insert-at-end into an IntegrityError instead of a duplicate position
        UniqueConstraint("course_id", "sort_order", name="uq_course_sections_course_order"),
        Index("ix_course_sections_course_id", "course_id"),
    )
