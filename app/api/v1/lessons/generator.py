"""
Expansion of a recurring schedule slot into dated lessons.

plan_generation() is pure: it walks every date of the range that falls on the
slot's weekday and decides create / skip (teaching break) / skip (holiday) /
skip (conflict).
generate_lessons() resolves the range, loads what the plan needs and adds the
planned lessons to the session without committing, so the caller commits the
whole batch (and anything created with it) at once or not at all.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.enums import ConflictType, DayOfWeek, GenerationRangeType, GenerationSource, LessonStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import AcademicYear, Lesson, PublicHoliday, ScheduleSlot, SchoolClass, Semester, TeachingBreak
from app.core.time_range import TimeRange

from .conflicts import classify_conflict, to_conflict
from .schemas import GenerationOptions, LessonConflict

logger = logging.getLogger(__name__)

SKIP_BREAK = "teaching_break"
SKIP_HOLIDAY = "public_holiday"
SKIP_CONFLICT = "scheduling_conflict"


@dataclass
class GenerationPlan:
    to_create: List[date] = field(default_factory=list)
    skipped: List[Tuple[date, str]] = field(default_factory=list)
    conflicts: List[LessonConflict] = field(default_factory=list)

    @property
    def skipped_conflicts(self) -> int:
        return sum(1 for _, reason in self.skipped if reason == SKIP_CONFLICT)

    @property
    def skipped_holidays(self) -> int:
        return sum(1 for _, reason in self.skipped if reason == SKIP_HOLIDAY)

    @property
    def skipped_breaks(self) -> int:
        return sum(1 for _, reason in self.skipped if reason == SKIP_BREAK)


@dataclass
class GenerationResult:
    created: List[Lesson]
    skipped_conflicts: int
    skipped_holidays: int
    skipped_breaks: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    skipped: List[Tuple[date, str]] = field(default_factory=list)


class HolidayCalendar:
    """Non-teaching days: public holidays and teaching breaks."""

    def __init__(self, holidays: Iterable[PublicHoliday], breaks: Iterable[TeachingBreak] = ()) -> None:
        self._breaks = [(b.start_date, b.end_date) for b in breaks]
        self._dates = set()
        self._annual = set()
        for h in holidays:
            if h.recurring_annually:
                self._annual.add((h.holiday_date.month, h.holiday_date.day))
            else:
                self._dates.add(h.holiday_date)

    def is_holiday(self, d: date) -> bool:
        return d in self._dates or (d.month, d.day) in self._annual

    def is_break(self, d: date) -> bool:
        return any(start <= d <= end for start, end in self._breaks)


def iter_weekdays(day_of_week: DayOfWeek, start: date, end: date) -> Iterable[date]:
    current = start + timedelta(days=(day_of_week.index - start.weekday()) % 7)
    while current <= end:
        yield current
        current += timedelta(days=7)


def _blocking_conflict(
    lesson: Lesson,
    class_id: UUID,
    teacher_id: UUID,
    classroom_id: Optional[UUID],
) -> Optional[ConflictType]:
    conflict_type = classify_conflict(lesson, class_id, teacher_id, classroom_id)
    if conflict_type is None:
        return None
    # The class's own lessons block regardless of status so that a rerun never
    # recreates a lesson that was generated and later cancelled.
    if lesson.class_id != class_id and lesson.status == LessonStatus.CANCELLED.value:
        return None
    return conflict_type


def plan_generation(
    day_of_week: DayOfWeek,
    window: TimeRange,
    start: date,
    end: date,
    class_id: UUID,
    teacher_id: UUID,
    classroom_id: Optional[UUID],
    existing_lessons: Iterable[Lesson],
    holidays: HolidayCalendar,
    skip_conflicts: bool = True,
    skip_holidays: bool = True,
    skip_breaks: bool = True,
) -> GenerationPlan:
    by_date = {}
    for lesson in existing_lessons:
        by_date.setdefault(lesson.scheduled_date, []).append(lesson)

    plan = GenerationPlan()
    for d in iter_weekdays(day_of_week, start, end):
        if skip_breaks and holidays.is_break(d):
            plan.skipped.append((d, SKIP_BREAK))
            continue
        if skip_holidays and holidays.is_holiday(d):
            plan.skipped.append((d, SKIP_HOLIDAY))
            continue
        clashes = []
        for lesson in by_date.get(d, []):
            if not TimeRange(lesson.start_time, lesson.end_time).overlaps(window):
                continue
            conflict_type = _blocking_conflict(lesson, class_id, teacher_id, classroom_id)
            if conflict_type is not None:
                clashes.append(to_conflict(lesson, conflict_type))
        if clashes:
            if skip_conflicts:
                plan.skipped.append((d, SKIP_CONFLICT))
                continue
            plan.conflicts.extend(clashes)
            continue
        plan.to_create.append(d)
    return plan


async def _current_academic_year(db: AsyncSession, today: date) -> Optional[AcademicYear]:
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_current.is_(True)).limit(1))
    ay = result.scalar_one_or_none()
    if ay:
        return ay
    result = await db.execute(
        select(AcademicYear)
        .where(AcademicYear.start_date <= today, AcademicYear.end_date >= today)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _resolve_semester(db: AsyncSession, slot: ScheduleSlot, today: date) -> Optional[Semester]:
    if slot.semester_id:
        return await db.get(Semester, slot.semester_id)
    result = await db.execute(
        select(Semester)
        .where(Semester.start_date <= today, Semester.end_date >= today)
        .order_by(Semester.start_date)
        .limit(1)
    )
    semester = result.scalar_one_or_none()
    if semester:
        return semester
    result = await db.execute(
        select(Semester).where(Semester.start_date > today).order_by(Semester.start_date).limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_range(
    db: AsyncSession,
    slot: ScheduleSlot,
    options: GenerationOptions,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """
    Dates to generate for. Custom ranges are taken as given; the other range
    types start today at the earliest. Every range is clipped to the slot's
    effective dates.
    """
    today = today or clock.today()
    if options.range_type == GenerationRangeType.CUSTOM:
        if not options.start_date or not options.end_date:
            raise ValidationError("start_date and end_date are required for a custom range")
        if options.end_date < options.start_date:
            raise ValidationError("end_date must be on or after start_date")
        start, end = options.start_date, options.end_date
    elif options.range_type == GenerationRangeType.UNTIL_MONTH_END:
        start = today
        end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    else:
        if options.range_type == GenerationRangeType.UNTIL_SEMESTER_END:
            period = await _resolve_semester(db, slot, today)
            if not period:
                raise ValidationError("No current or upcoming semester to generate lessons for")
        else:
            period = await _current_academic_year(db, today)
            if not period:
                raise ValidationError("No current academic year to generate lessons for")
        start = max(today, period.start_date)
        end = period.end_date

    if slot.effective_from:
        start = max(start, slot.effective_from)
    if slot.effective_to:
        end = min(end, slot.effective_to)
    return start, end


async def generate_lessons(
    db: AsyncSession,
    slot: ScheduleSlot,
    options: GenerationOptions,
    today: Optional[date] = None,
) -> GenerationResult:
    """Plan and add lessons for slot. Does not commit; raises ConflictError when conflicts are not skipped."""
    school_class = await db.get(SchoolClass, slot.class_id)
    if not school_class:
        raise NotFoundError("Class not found")
    start, end = await resolve_range(db, slot, options, today)
    window = TimeRange(slot.start_time, slot.end_time)
    if end < start:
        return GenerationResult(created=[], skipped_conflicts=0, skipped_holidays=0, start_date=start, end_date=end)

    shares_resource = [Lesson.class_id == slot.class_id, Lesson.teacher_id == school_class.teacher_id]
    if school_class.classroom_id is not None:
        shares_resource.append(Lesson.classroom_id == school_class.classroom_id)
    existing = await db.execute(
        select(Lesson).where(
            Lesson.scheduled_date >= start,
            Lesson.scheduled_date <= end,
            or_(*shares_resource),
        )
    )
    holidays = await db.execute(
        select(PublicHoliday).where(
            or_(
                PublicHoliday.recurring_annually.is_(True),
                and_(PublicHoliday.holiday_date >= start, PublicHoliday.holiday_date <= end),
            )
        )
    )
    breaks = await db.execute(
        select(TeachingBreak).where(TeachingBreak.start_date <= end, TeachingBreak.end_date >= start)
    )

    plan = plan_generation(
        DayOfWeek(slot.day_of_week),
        window,
        start,
        end,
        slot.class_id,
        school_class.teacher_id,
        school_class.classroom_id,
        existing.scalars().all(),
        HolidayCalendar(holidays.scalars().all(), breaks.scalars().all()),
        skip_conflicts=options.skip_conflicts,
        skip_holidays=options.skip_holidays,
        skip_breaks=options.skip_breaks,
    )
    if plan.conflicts:
        raise ConflictError(
            f"{len(plan.conflicts)} generated lesson(s) would conflict with existing lessons",
            conflicts=plan.conflicts,
        )

    created = [
        Lesson(
            class_id=slot.class_id,
            teacher_id=school_class.teacher_id,
            classroom_id=school_class.classroom_id,
            schedule_slot_id=slot.id,
            scheduled_date=d,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=LessonStatus.SCHEDULED.value,
            generation_source=GenerationSource.AUTOMATIC.value,
        )
        for d in plan.to_create
    ]
    db.add_all(created)
    await db.flush()
    logger.info(
        "generated lessons slot=%s range=%s..%s created=%d skipped_conflicts=%d skipped_holidays=%d skipped_breaks=%d",
        slot.id,
        start,
        end,
        len(created),
        plan.skipped_conflicts,
        plan.skipped_holidays,
        plan.skipped_breaks,
    )
    return GenerationResult(
        created=created,
        skipped_conflicts=plan.skipped_conflicts,
        skipped_holidays=plan.skipped_holidays,
        skipped_breaks=plan.skipped_breaks,
        start_date=start,
        end_date=end,
        skipped=plan.skipped,
    )
