"""
Conflict detection for a candidate lesson window.

A window conflicts with any non-cancelled lesson on the same date whose
[start, end) overlaps it and which shares the class, the teacher or the
classroom. The lesson being moved is excluded by id.
"""

from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import ConflictType, LessonStatus
from app.core.exceptions import NotFoundError
from app.core.models import Classroom, Lesson, SchoolClass
from app.core.time_range import TimeRange

from .schemas import ConflictSuggestion, LessonConflict

_DETAILS = {
    ConflictType.EXISTING_LESSON: "Class already has a lesson at this time",
    ConflictType.TEACHER_CONFLICT: "Teacher is teaching another class at this time",
    ConflictType.CLASSROOM_CONFLICT: "Classroom is occupied at this time",
}


def classify_conflict(
    lesson: Lesson,
    class_id: UUID,
    teacher_id: Optional[UUID],
    classroom_id: Optional[UUID],
) -> Optional[ConflictType]:
    """Which shared resource makes lesson collide with a window of class_id. Ignores time."""
    if lesson.class_id == class_id:
        return ConflictType.EXISTING_LESSON
    if teacher_id is not None and lesson.teacher_id == teacher_id:
        return ConflictType.TEACHER_CONFLICT
    if classroom_id is not None and lesson.classroom_id == classroom_id:
        return ConflictType.CLASSROOM_CONFLICT
    return None


def to_conflict(
    lesson: Lesson,
    conflict_type: ConflictType,
    class_name: Optional[str] = None,
    classroom_name: Optional[str] = None,
) -> LessonConflict:
    window = f"{lesson.start_time.strftime('%H:%M')}-{lesson.end_time.strftime('%H:%M')}"
    details = f"{_DETAILS[conflict_type]} ({class_name or 'another class'}, {lesson.scheduled_date.isoformat()} {window})"
    return LessonConflict(
        conflict_type=conflict_type,
        conflicting_lesson_id=lesson.id,
        conflicting_class_id=lesson.class_id,
        conflicting_class_name=class_name,
        classroom_name=classroom_name,
        scheduled_date=lesson.scheduled_date,
        start_time=lesson.start_time,
        end_time=lesson.end_time,
        conflict_details=details,
    )


async def find_conflicts(
    db: AsyncSession,
    class_id: UUID,
    scheduled_date: date,
    window: TimeRange,
    exclude_lesson_id: Optional[UUID] = None,
) -> List[LessonConflict]:
    school_class = await db.get(SchoolClass, class_id)
    if not school_class:
        raise NotFoundError("Class not found")

    shares_resource = [Lesson.class_id == class_id, Lesson.teacher_id == school_class.teacher_id]
    if school_class.classroom_id is not None:
        shares_resource.append(Lesson.classroom_id == school_class.classroom_id)

    stmt = (
        select(Lesson, SchoolClass.name, Classroom.name)
        .join(SchoolClass, Lesson.class_id == SchoolClass.id)
        .outerjoin(Classroom, Lesson.classroom_id == Classroom.id)
        .where(
            Lesson.scheduled_date == scheduled_date,
            Lesson.status != LessonStatus.CANCELLED.value,
            Lesson.start_time < window.end,
            Lesson.end_time > window.start,
            or_(*shares_resource),
        )
        .order_by(Lesson.start_time)
    )
    if exclude_lesson_id is not None:
        stmt = stmt.where(Lesson.id != exclude_lesson_id)
    result = await db.execute(stmt)

    conflicts: List[LessonConflict] = []
    for lesson, class_name, classroom_name in result.all():
        conflict_type = classify_conflict(
            lesson, class_id, school_class.teacher_id, school_class.classroom_id
        )
        if conflict_type is not None:
            conflicts.append(to_conflict(lesson, conflict_type, class_name, classroom_name))
    return conflicts


def suggest_alternative_dates(scheduled_date: date, window: TimeRange) -> List[ConflictSuggestion]:
    """Next weekday (weekends skipped) and the same weekday next week, same times."""
    next_weekday = scheduled_date + timedelta(days=1)
    while next_weekday.weekday() >= 5:
        next_weekday += timedelta(days=1)
    next_week = scheduled_date + timedelta(days=7)
    return [
        ConflictSuggestion(
            type="next_weekday",
            label=f"Next weekday ({next_weekday.strftime('%a %b')} {next_weekday.day})",
            scheduled_date=next_weekday,
            start_time=window.start,
            end_time=window.end,
        ),
        ConflictSuggestion(
            type="next_week",
            label=f"Next week ({next_week.strftime('%a %b')} {next_week.day})",
            scheduled_date=next_week,
            start_time=window.start,
            end_time=window.end,
        ),
    ]
