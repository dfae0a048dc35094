"""Make-up lessons for cancelled lessons. At most one make-up per cancellation."""

import logging
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import GenerationSource, LessonAction, LessonStatus
from app.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ServiceError
from app.core.models import Lesson, SchoolClass
from app.core.time_range import TimeRange

from .conflicts import find_conflicts, suggest_alternative_dates
from .lifecycle import ensure_transition
from .schemas import MakeupLessonRequest

logger = logging.getLogger(__name__)


def check_makeup_links(source: Lesson, makeup: Lesson) -> None:
    """Both pointers describe the same single edge source -> makeup."""
    if source.id == makeup.id:
        raise ServiceError("a lesson cannot be its own make-up")
    if source.makeup_lesson_id != makeup.id or makeup.original_lesson_id != source.id:
        raise ServiceError("make-up link is not mutual")
    if makeup.makeup_lesson_id is not None and makeup.makeup_lesson_id == source.id:
        raise ServiceError("make-up link forms a cycle")


async def add_makeup_lesson(
    db: AsyncSession,
    source: Lesson,
    payload: MakeupLessonRequest,
) -> Lesson:
    """
    Create the Make Up lesson for a cancelled source and link both rows.
    Adds to the session without committing; the caller commits both rows together.
    """
    ensure_transition(source.lesson_status, LessonAction.CREATE_MAKEUP)
    if source.makeup_lesson_id is not None:
        raise InvalidTransitionError("This lesson already has a make-up lesson")

    school_class = await db.get(SchoolClass, source.class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    window = TimeRange(payload.start_time, payload.end_time)
    conflicts = await find_conflicts(
        db, source.class_id, payload.scheduled_date, window, exclude_lesson_id=source.id
    )
    if conflicts:
        raise ConflictError(
            "Make-up lesson conflicts with existing lessons",
            conflicts=conflicts,
            suggestions=suggest_alternative_dates(payload.scheduled_date, window),
        )

    makeup = Lesson(
        class_id=source.class_id,
        teacher_id=school_class.teacher_id,
        classroom_id=school_class.classroom_id,
        scheduled_date=payload.scheduled_date,
        start_time=window.start,
        end_time=window.end,
        status=LessonStatus.MAKE_UP.value,
        original_lesson_id=source.id,
        original_lesson_date=source.scheduled_date,
        notes=payload.notes,
        generation_source=GenerationSource.MAKEUP.value,
    )
    db.add(makeup)
    await db.flush()
    source.makeup_lesson_id = makeup.id
    check_makeup_links(source, makeup)
    logger.info("make-up lesson %s created for cancelled lesson %s", makeup.id, source.id)
    return makeup
