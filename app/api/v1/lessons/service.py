"""Lesson create, conflict check, lifecycle actions, grace-period edits with audit."""

import logging
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.enums import GenerationSource, LessonAction, LessonStatus, LessonTimeWindow
from app.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from app.core.models import Lesson, LessonAuditLog, SchoolClass, Semester
from app.core.time_range import TimeRange

from . import lifecycle
from .conflicts import find_conflicts, suggest_alternative_dates
from .makeup import add_makeup_lesson
from .schemas import (
    CancelLessonRequest,
    ConductLessonRequest,
    ConflictCheckResult,
    LessonAuditEntry,
    LessonCreate,
    LessonListParams,
    LessonResponse,
    LessonUpdate,
    MakeupLessonRequest,
    NoShowRequest,
    PastUnstartedCount,
    RescheduleLessonRequest,
)

logger = logging.getLogger(__name__)


def _to_response(
    lesson: Lesson,
    class_name: Optional[str] = None,
    has_audit_history: bool = False,
    now: Optional[datetime] = None,
) -> LessonResponse:
    now = clock.localize(now) if now else clock.now()
    return LessonResponse(
        id=lesson.id,
        class_id=lesson.class_id,
        class_name=class_name,
        teacher_id=lesson.teacher_id,
        classroom_id=lesson.classroom_id,
        schedule_slot_id=lesson.schedule_slot_id,
        scheduled_date=lesson.scheduled_date,
        start_time=lesson.start_time,
        end_time=lesson.end_time,
        status_name=lesson.lesson_status,
        conducted_at=lesson.conducted_at,
        cancellation_reason=lesson.cancellation_reason,
        reschedule_reason=lesson.reschedule_reason,
        makeup_lesson_id=lesson.makeup_lesson_id,
        original_lesson_id=lesson.original_lesson_id,
        original_lesson_date=lesson.original_lesson_date,
        notes=lesson.notes,
        generation_source=GenerationSource(lesson.generation_source),
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
        needs_documentation=lifecycle.needs_documentation(lesson, now),
        can_conduct=lifecycle.can_conduct(lesson, now),
        edit_lock=lifecycle.edit_lock(lesson, now.date()),
        has_audit_history=has_audit_history,
    )


def _rows_stmt(*criteria: Any):
    has_audit = exists().where(LessonAuditLog.lesson_id == Lesson.id)
    return (
        select(Lesson, SchoolClass.name, has_audit.label("has_audit_history"))
        .join(SchoolClass, Lesson.class_id == SchoolClass.id)
        .where(*criteria)
    )


async def _fetch_responses(
    db: AsyncSession,
    *criteria: Any,
    now: Optional[datetime] = None,
) -> List[LessonResponse]:
    stmt = _rows_stmt(*criteria).order_by(Lesson.scheduled_date, Lesson.start_time)
    result = await db.execute(stmt)
    return [_to_response(lesson, name, bool(audited), now) for lesson, name, audited in result.all()]


async def _response_for(db: AsyncSession, lesson_id: UUID, now: Optional[datetime] = None) -> LessonResponse:
    rows = await _fetch_responses(db, Lesson.id == lesson_id, now=now)
    if not rows:
        raise NotFoundError("Lesson not found")
    return rows[0]


async def get_lesson_or_404(db: AsyncSession, lesson_id: UUID) -> Lesson:
    lesson = await db.get(Lesson, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    return lesson


async def get_lesson(db: AsyncSession, lesson_id: UUID, now: Optional[datetime] = None) -> LessonResponse:
    return await _response_for(db, lesson_id, now)


async def _commit(db: AsyncSession, *objs: Lesson) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Lesson update failed", status.HTTP_409_CONFLICT)
    for obj in objs:
        await db.refresh(obj)


async def list_lessons(
    db: AsyncSession,
    params: LessonListParams,
    now: Optional[datetime] = None,
) -> List[LessonResponse]:
    """Lesson repository list used by list views (and their refresh after quick actions)."""
    criteria = []
    if params.class_id is not None:
        criteria.append(Lesson.class_id == params.class_id)
    if params.status_name is not None:
        criteria.append(Lesson.status == params.status_name.value)
    if params.start_date is not None:
        criteria.append(Lesson.scheduled_date >= params.start_date)
    if params.end_date is not None:
        criteria.append(Lesson.scheduled_date <= params.end_date)
    if params.semester_id is not None:
        semester = await db.get(Semester, params.semester_id)
        if not semester:
            raise NotFoundError("Semester not found")
        criteria.append(Lesson.scheduled_date >= semester.start_date)
        criteria.append(Lesson.scheduled_date <= semester.end_date)
    if params.time_window != LessonTimeWindow.ALL:
        today = (clock.localize(now) if now else clock.now()).date()
        days = 7 if params.time_window == LessonTimeWindow.WEEK else 31
        criteria.append(Lesson.scheduled_date >= today)
        criteria.append(Lesson.scheduled_date < today + timedelta(days=days))
    return await _fetch_responses(db, *criteria, now=now)


async def check_conflicts(
    db: AsyncSession,
    class_id: UUID,
    scheduled_date: date,
    window: TimeRange,
    exclude_lesson_id: Optional[UUID] = None,
) -> ConflictCheckResult:
    conflicts = await find_conflicts(db, class_id, scheduled_date, window, exclude_lesson_id)
    return ConflictCheckResult(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        suggestions=suggest_alternative_dates(scheduled_date, window) if conflicts else [],
    )


async def _ensure_no_conflicts(
    db: AsyncSession,
    class_id: UUID,
    scheduled_date: date,
    window: TimeRange,
    exclude_lesson_id: Optional[UUID],
    force: bool,
    message: str,
) -> None:
    conflicts = await find_conflicts(db, class_id, scheduled_date, window, exclude_lesson_id)
    if not conflicts:
        return
    if force:
        logger.warning(
            "committing past %d conflict(s) on %s %s by explicit override", len(conflicts), scheduled_date, window
        )
        return
    raise ConflictError(message, conflicts=conflicts, suggestions=suggest_alternative_dates(scheduled_date, window))


async def create_lesson(db: AsyncSession, payload: LessonCreate, now: Optional[datetime] = None) -> LessonResponse:
    school_class = await db.get(SchoolClass, payload.class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    window = TimeRange(payload.start_time, payload.end_time)
    await _ensure_no_conflicts(
        db, payload.class_id, payload.scheduled_date, window, None, payload.force,
        "Lesson conflicts with existing lessons",
    )
    lesson = Lesson(
        class_id=payload.class_id,
        teacher_id=school_class.teacher_id,
        classroom_id=school_class.classroom_id,
        scheduled_date=payload.scheduled_date,
        start_time=window.start,
        end_time=window.end,
        status=LessonStatus.SCHEDULED.value,
        notes=payload.notes,
        generation_source=GenerationSource.MANUAL.value,
    )
    db.add(lesson)
    await _commit(db, lesson)
    return await _response_for(db, lesson.id, now)


async def conduct_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    payload: ConductLessonRequest,
    now: Optional[datetime] = None,
) -> LessonResponse:
    lesson = await get_lesson_or_404(db, lesson_id)
    try:
        lifecycle.conduct(lesson, now, payload.notes)
        if payload.conducted_at is not None:
            lesson.conducted_at = payload.conducted_at
        await _commit(db, lesson)
    except ServiceError:
        await db.rollback()
        raise
    logger.info("lesson %s conducted", lesson_id)
    return await _response_for(db, lesson_id, now)


async def cancel_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    payload: CancelLessonRequest,
    now: Optional[datetime] = None,
) -> LessonResponse:
    """Cancel, and with payload.makeup create the linked Make Up lesson in the same transaction."""
    lesson = await get_lesson_or_404(db, lesson_id)
    try:
        lifecycle.cancel(lesson, payload.cancellation_reason)
        if payload.makeup is not None:
            await add_makeup_lesson(db, lesson, payload.makeup)
        await _commit(db, lesson)
    except ServiceError:
        await db.rollback()
        raise
    logger.info("lesson %s cancelled (makeup=%s)", lesson_id, lesson.makeup_lesson_id)
    return await _response_for(db, lesson_id, now)


async def mark_no_show(
    db: AsyncSession,
    lesson_id: UUID,
    payload: NoShowRequest,
    now: Optional[datetime] = None,
) -> LessonResponse:
    lesson = await get_lesson_or_404(db, lesson_id)
    try:
        lifecycle.mark_no_show(lesson, payload.notes)
        await _commit(db, lesson)
    except ServiceError:
        await db.rollback()
        raise
    logger.info("lesson %s marked no show", lesson_id)
    return await _response_for(db, lesson_id, now)


async def reschedule_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    payload: RescheduleLessonRequest,
    now: Optional[datetime] = None,
) -> LessonResponse:
    lesson = await get_lesson_or_404(db, lesson_id)
    lifecycle.ensure_transition(lesson.lesson_status, LessonAction.RESCHEDULE)
    window = TimeRange(payload.new_start_time, payload.new_end_time)
    await _ensure_no_conflicts(
        db, lesson.class_id, payload.new_scheduled_date, window, lesson.id, payload.force,
        "New lesson time conflicts with existing lessons",
    )
    previous = (lesson.scheduled_date, lesson.start_time)
    lesson.scheduled_date = payload.new_scheduled_date
    lesson.start_time = window.start
    lesson.end_time = window.end
    if payload.reschedule_reason is not None:
        lesson.reschedule_reason = payload.reschedule_reason.strip() or None
    await _commit(db, lesson)
    logger.info("lesson %s rescheduled from %s %s to %s %s", lesson_id, *previous, lesson.scheduled_date, window)
    return await _response_for(db, lesson_id, now)


async def create_makeup_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    payload: MakeupLessonRequest,
    now: Optional[datetime] = None,
) -> LessonResponse:
    """Make-up for an already cancelled lesson. Returns the new Make Up lesson."""
    source = await get_lesson_or_404(db, lesson_id)
    try:
        makeup = await add_makeup_lesson(db, source, payload)
        await _commit(db, source, makeup)
    except ServiceError:
        await db.rollback()
        raise
    return await _response_for(db, makeup.id, now)


def _audit_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


async def update_lesson(
    db: AsyncSession,
    lesson_id: UUID,
    payload: LessonUpdate,
    now: Optional[datetime] = None,
) -> LessonResponse:
    """
    Edit lesson details. Conducted lessons from a previous day are locked;
    same-day edits of conducted lessons are recorded in lesson_audit_logs.
    """
    lesson = await get_lesson_or_404(db, lesson_id)
    today = (clock.localize(now) if now else clock.now()).date()
    audited = lifecycle.ensure_editable(lesson, today)

    fields = payload.model_fields_set
    if "conducted_at" in fields and lesson.lesson_status != LessonStatus.CONDUCTED:
        raise ValidationError("conducted_at can only be edited on conducted lessons")
    changes: List[Tuple[str, Any, Any]] = []
    for name in ("notes", "conducted_at"):
        if name not in fields:
            continue
        old, new = getattr(lesson, name), getattr(payload, name)
        if old != new:
            changes.append((name, old, new))
            setattr(lesson, name, new)

    if audited:
        for name, old, new in changes:
            db.add(
                LessonAuditLog(
                    lesson_id=lesson.id,
                    field_changed=name,
                    old_value=_audit_value(old),
                    new_value=_audit_value(new),
                )
            )
        if changes:
            logger.info("grace-period edit of lesson %s: %s", lesson_id, ", ".join(c[0] for c in changes))
    await _commit(db, lesson)
    return await _response_for(db, lesson_id, now)


async def delete_lesson(db: AsyncSession, lesson_id: UUID) -> None:
    """Only still-scheduled lessons can be deleted; other statuses stay for audit."""
    lesson = await get_lesson_or_404(db, lesson_id)
    lifecycle.ensure_transition(lesson.lesson_status, LessonAction.DELETE)
    await db.delete(lesson)
    await db.commit()


async def list_audit_history(db: AsyncSession, lesson_id: UUID) -> List[LessonAuditEntry]:
    await get_lesson_or_404(db, lesson_id)
    result = await db.execute(
        select(LessonAuditLog)
        .where(LessonAuditLog.lesson_id == lesson_id)
        .order_by(LessonAuditLog.changed_at.desc())
    )
    return [LessonAuditEntry.model_validate(entry) for entry in result.scalars().all()]


async def list_past_unstarted(
    db: AsyncSession,
    class_id: UUID,
    now: Optional[datetime] = None,
) -> List[LessonResponse]:
    """Scheduled / Make Up lessons that already ended: they need documenting."""
    now = clock.localize(now) if now else clock.now()
    rows = await _fetch_responses(
        db,
        Lesson.class_id == class_id,
        Lesson.status.in_([s.value for s in lifecycle.ACTIONABLE_STATUSES]),
        Lesson.scheduled_date <= now.date(),
        now=now,
    )
    return [r for r in rows if r.needs_documentation]


async def count_past_unstarted(
    db: AsyncSession,
    class_id: UUID,
    now: Optional[datetime] = None,
) -> PastUnstartedCount:
    rows = await list_past_unstarted(db, class_id, now)
    return PastUnstartedCount(class_id=class_id, count=len(rows))
