import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.lessons.generator import GenerationResult, generate_lessons
from app.api.v1.lessons.schemas import GenerationOptions, GenerationSummary, SkippedDate
from app.core.config import settings
from app.core.enums import DayOfWeek
from app.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from app.core.models import ScheduleSlot, SchoolClass, Semester
from app.core.time_range import TimeRange

from .schemas import (
    ScheduleSlotCandidate,
    ScheduleSlotCreate,
    ScheduleSlotCreatedResponse,
    ScheduleSlotResponse,
    ScheduleSlotUpdate,
    SlotOverlap,
    SlotValidationResponse,
    TimeSlotSuggestion,
    TimeSlotSuggestionRequest,
    TimeSlotSuggestionsResponse,
)
from .validator import SlotEntry, SlotValidation, suggest_alternatives, validate_slot

logger = logging.getLogger(__name__)


def _to_response(s: ScheduleSlot) -> ScheduleSlotResponse:
    return ScheduleSlotResponse(
        id=s.id,
        class_id=s.class_id,
        semester_id=s.semester_id,
        day_of_week=DayOfWeek(s.day_of_week),
        start_time=s.start_time,
        end_time=s.end_time,
        effective_from=s.effective_from,
        effective_to=s.effective_to,
        is_archived=s.is_archived,
        archived_at=s.archived_at,
        created_at=s.created_at,
    )


def _entry(s: ScheduleSlot, class_name: Optional[str] = None, shared_resource: Optional[str] = None) -> SlotEntry:
    return SlotEntry(
        day_of_week=DayOfWeek(s.day_of_week),
        time_range=TimeRange(s.start_time, s.end_time),
        id=s.id,
        class_id=s.class_id,
        class_name=class_name,
        shared_resource=shared_resource,
    )


def _overlap(entry: SlotEntry) -> SlotOverlap:
    return SlotOverlap(
        slot_id=entry.id,
        class_id=entry.class_id,
        class_name=entry.class_name,
        day_of_week=entry.day_of_week,
        start_time=entry.time_range.start,
        end_time=entry.time_range.end,
        shared_resource=entry.shared_resource,
    )


def _validation_response(v: SlotValidation) -> SlotValidationResponse:
    return SlotValidationResponse(
        ok=v.ok,
        reason=v.reason,
        overlapping_slot=_overlap(v.overlapping_slot) if v.overlapping_slot else None,
        has_existing_overlap=v.has_existing_overlap,
        existing_overlaps=[_overlap(s) for s in v.existing_overlaps],
    )


def _summary(result: GenerationResult) -> GenerationSummary:
    return GenerationSummary(
        total_generated=len(result.created),
        skipped_conflicts=result.skipped_conflicts,
        skipped_holidays=result.skipped_holidays,
        skipped_breaks=result.skipped_breaks,
        start_date=result.start_date,
        end_date=result.end_date,
        lesson_ids=[lesson.id for lesson in result.created],
        skipped=[SkippedDate(scheduled_date=d, skip_reason=reason) for d, reason in result.skipped],
    )


async def _get_class(db: AsyncSession, class_id: UUID) -> SchoolClass:
    cl = await db.get(SchoolClass, class_id)
    if not cl or not cl.is_active:
        raise NotFoundError("Class not found")
    return cl


async def _get_slot(db: AsyncSession, slot_id: UUID) -> ScheduleSlot:
    slot = await db.get(ScheduleSlot, slot_id)
    if not slot:
        raise NotFoundError("Schedule slot not found")
    return slot


async def _class_slots(db: AsyncSession, class_id: UUID) -> List[SlotEntry]:
    result = await db.execute(
        select(ScheduleSlot).where(
            ScheduleSlot.class_id == class_id,
            ScheduleSlot.is_archived.is_(False),
        )
    )
    return [_entry(s) for s in result.scalars().all()]


async def _shared_resource_slots(db: AsyncSession, school_class: SchoolClass) -> List[SlotEntry]:
    """Active slots of other classes with the same teacher or in the same classroom."""
    shares = [SchoolClass.teacher_id == school_class.teacher_id]
    if school_class.classroom_id is not None:
        shares.append(SchoolClass.classroom_id == school_class.classroom_id)
    result = await db.execute(
        select(ScheduleSlot, SchoolClass)
        .join(SchoolClass, ScheduleSlot.class_id == SchoolClass.id)
        .where(
            ScheduleSlot.class_id != school_class.id,
            ScheduleSlot.is_archived.is_(False),
            SchoolClass.is_active.is_(True),
            or_(*shares),
        )
    )
    entries = []
    for slot, other in result.all():
        resource = "teacher" if other.teacher_id == school_class.teacher_id else "classroom"
        entries.append(_entry(slot, other.name, resource))
    return entries


async def _validate(
    db: AsyncSession,
    school_class: SchoolClass,
    day_of_week: DayOfWeek,
    window: TimeRange,
    exclude_slot_id: Optional[UUID] = None,
) -> SlotValidation:
    candidate = SlotEntry(day_of_week=day_of_week, time_range=window, id=exclude_slot_id, class_id=school_class.id)
    return validate_slot(
        candidate,
        await _class_slots(db, school_class.id),
        await _shared_resource_slots(db, school_class),
    )


def _reject(validation: SlotValidation) -> None:
    if not validation.ok:
        raise ConflictError(
            validation.reason or "Schedule slot overlaps an existing slot of this class",
            conflicts=[_overlap(validation.overlapping_slot)] if validation.overlapping_slot else [],
        )


async def validate_schedule_slot(
    db: AsyncSession,
    class_id: UUID,
    payload: ScheduleSlotCandidate,
) -> SlotValidationResponse:
    school_class = await _get_class(db, class_id)
    window = TimeRange(payload.start_time, payload.end_time)
    validation = await _validate(db, school_class, payload.day_of_week, window, payload.exclude_slot_id)
    return _validation_response(validation)


async def suggest_time_slots(
    db: AsyncSession,
    class_id: UUID,
    payload: TimeSlotSuggestionRequest,
) -> TimeSlotSuggestionsResponse:
    school_class = await _get_class(db, class_id)
    start = datetime.combine(date.min, payload.preferred_start_time)
    end = start + timedelta(minutes=payload.duration)
    if end.date() != start.date():
        raise ValidationError("Slot must end on the same day it starts")
    candidate = SlotEntry(
        day_of_week=payload.preferred_day_of_week,
        time_range=TimeRange(payload.preferred_start_time, end.time()),
        class_id=class_id,
    )
    known = await _class_slots(db, class_id) + await _shared_resource_slots(db, school_class)
    suggestions = suggest_alternatives(
        candidate, known, payload.max_suggestions or settings.max_suggestions
    )
    return TimeSlotSuggestionsResponse(
        suggestions=[
            TimeSlotSuggestion(day_of_week=s.day_of_week, start_time=s.start_time, end_time=s.end_time)
            for s in suggestions
        ]
    )


async def create_schedule_slot(
    db: AsyncSession,
    class_id: UUID,
    payload: ScheduleSlotCreate,
    today: Optional[date] = None,
) -> ScheduleSlotCreatedResponse:
    """
    Create a slot; with generate_lessons also expand it into lessons.
    Slot and lessons are committed together or not at all.
    """
    school_class = await _get_class(db, class_id)
    window = TimeRange(payload.start_time, payload.end_time)
    if payload.effective_from and payload.effective_to and payload.effective_to < payload.effective_from:
        raise ValidationError("effective_to must be on or after effective_from")
    if payload.semester_id is not None and not await db.get(Semester, payload.semester_id):
        raise ValidationError("Invalid semester")
    validation = await _validate(db, school_class, payload.day_of_week, window)
    _reject(validation)
    if validation.has_existing_overlap:
        logger.info(
            "slot for class %s overlaps %d slot(s) sharing teacher/classroom",
            class_id,
            len(validation.existing_overlaps),
        )

    summary = None
    try:
        slot = ScheduleSlot(
            class_id=class_id,
            semester_id=payload.semester_id,
            day_of_week=payload.day_of_week.value,
            start_time=window.start,
            end_time=window.end,
            effective_from=payload.effective_from,
            effective_to=payload.effective_to,
        )
        db.add(slot)
        await db.flush()
        if payload.generate_lessons:
            result = await generate_lessons(db, slot, payload.generation_options or GenerationOptions(), today)
            summary = _summary(result)
        await db.commit()
        await db.refresh(slot)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Schedule slot creation failed", status.HTTP_409_CONFLICT)
    except ServiceError:
        await db.rollback()
        raise
    return ScheduleSlotCreatedResponse(
        slot=_to_response(slot),
        existing_overlap=_validation_response(validation),
        generation_summary=summary,
    )


async def list_schedule_slots(
    db: AsyncSession,
    class_id: UUID,
    include_archived: bool = False,
) -> List[ScheduleSlotResponse]:
    stmt = select(ScheduleSlot).where(ScheduleSlot.class_id == class_id)
    if not include_archived:
        stmt = stmt.where(ScheduleSlot.is_archived.is_(False))
    result = await db.execute(stmt)
    slots = sorted(result.scalars().all(), key=lambda s: (DayOfWeek(s.day_of_week).index, s.start_time))
    return [_to_response(s) for s in slots]


async def get_schedule_slot(db: AsyncSession, slot_id: UUID) -> ScheduleSlotResponse:
    return _to_response(await _get_slot(db, slot_id))


async def update_schedule_slot(
    db: AsyncSession,
    slot_id: UUID,
    payload: ScheduleSlotUpdate,
) -> ScheduleSlotResponse:
    """Edits apply to future generation only; lessons already generated are left as they are."""
    slot = await _get_slot(db, slot_id)
    if slot.is_archived:
        raise ValidationError("Archived schedule slots cannot be edited")
    fields = payload.model_fields_set
    day = payload.day_of_week if payload.day_of_week is not None else DayOfWeek(slot.day_of_week)
    start: time = payload.start_time if payload.start_time is not None else slot.start_time
    end: time = payload.end_time if payload.end_time is not None else slot.end_time
    window = TimeRange(start, end)
    effective_from = payload.effective_from if "effective_from" in fields else slot.effective_from
    effective_to = payload.effective_to if "effective_to" in fields else slot.effective_to
    if effective_from and effective_to and effective_to < effective_from:
        raise ValidationError("effective_to must be on or after effective_from")

    school_class = await _get_class(db, slot.class_id)
    _reject(await _validate(db, school_class, day, window, exclude_slot_id=slot.id))

    slot.day_of_week = day.value
    slot.start_time = window.start
    slot.end_time = window.end
    slot.effective_from = effective_from
    slot.effective_to = effective_to
    if "semester_id" in fields:
        slot.semester_id = payload.semester_id
    await db.commit()
    await db.refresh(slot)
    return _to_response(slot)


async def archive_schedule_slot(db: AsyncSession, slot_id: UUID) -> ScheduleSlotResponse:
    """Archive a slot. Lessons generated from it are kept."""
    slot = await _get_slot(db, slot_id)
    if not slot.is_archived:
        slot.is_archived = True
        slot.archived_at = datetime.utcnow()
        await db.commit()
        await db.refresh(slot)
        logger.info("schedule slot %s archived", slot_id)
    return _to_response(slot)


async def generate_for_slot(
    db: AsyncSession,
    slot_id: UUID,
    options: GenerationOptions,
    today: Optional[date] = None,
) -> GenerationSummary:
    slot = await _get_slot(db, slot_id)
    if slot.is_archived:
        raise ValidationError("Cannot generate lessons from an archived schedule slot")
    try:
        result = await generate_lessons(db, slot, options, today)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Lesson generation failed", status.HTTP_409_CONFLICT)
    except ServiceError:
        await db.rollback()
        raise
    return _summary(result)
