"""
Lesson: one dated occurrence of a class meeting.

A cancelled lesson may point at its replacement through makeup_lesson_id; the
replacement (status "Make Up") points back through original_lesson_id. Both
columns describe the same edge; at most one make-up exists per cancellation.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, String, Text, Time
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import GenerationSource, LessonStatus
from app.db.session import Base


class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="chk_lesson_time_range"),
        Index("ix_lessons_date_teacher", "scheduled_date", "teacher_id"),
        Index("ix_lessons_date_classroom", "scheduled_date", "classroom_id"),
        Index("ix_lessons_class_date", "class_id", "scheduled_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    # Copied from the class when the lesson is created.
    teacher_id = Column(UUID(as_uuid=True), nullable=False)
    classroom_id = Column(UUID(as_uuid=True), ForeignKey("classrooms.id", ondelete="SET NULL"), nullable=True)
    schedule_slot_id = Column(
        UUID(as_uuid=True),
        ForeignKey("schedule_slots.id", ondelete="SET NULL"),
        nullable=True,
    )
    scheduled_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=LessonStatus.SCHEDULED.value)
    conducted_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    reschedule_reason = Column(Text, nullable=True)
    makeup_lesson_id = Column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    original_lesson_id = Column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="SET NULL"),
        nullable=True,
    )
    original_lesson_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    generation_source = Column(String(20), nullable=False, default=GenerationSource.MANUAL.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    classroom = relationship("Classroom", foreign_keys=[classroom_id])

    @property
    def lesson_status(self) -> LessonStatus:
        return LessonStatus(self.status)


class LessonAuditLog(Base):
    """One row per field changed on a conducted lesson during its same-day grace period."""

    __tablename__ = "lesson_audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lesson_id = Column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_changed = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    lesson = relationship("Lesson", backref="audit_logs", foreign_keys=[lesson_id])
