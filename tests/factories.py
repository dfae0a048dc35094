from datetime import date, time
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import DayOfWeek, GenerationSource, LessonStatus
from app.core.models import (
    AcademicYear,
    Classroom,
    Lesson,
    PublicHoliday,
    ScheduleSlot,
    SchoolClass,
    Semester,
    TeachingBreak,
)


async def make_classroom(db: AsyncSession, name: str = "Room A") -> Classroom:
    room = Classroom(name=name)
    db.add(room)
    await db.commit()
    return room


async def make_class(
    db: AsyncSession,
    name: str = "Maths 7A",
    teacher_id: Optional[UUID] = None,
    classroom: Optional[Classroom] = None,
) -> SchoolClass:
    cl = SchoolClass(
        name=name,
        teacher_id=teacher_id or uuid4(),
        classroom_id=classroom.id if classroom else None,
    )
    db.add(cl)
    await db.commit()
    return cl


async def make_lesson(
    db: AsyncSession,
    school_class: SchoolClass,
    scheduled_date: date,
    start: time = time(10, 0),
    end: time = time(11, 0),
    status: LessonStatus = LessonStatus.SCHEDULED,
) -> Lesson:
    lesson = Lesson(
        class_id=school_class.id,
        teacher_id=school_class.teacher_id,
        classroom_id=school_class.classroom_id,
        scheduled_date=scheduled_date,
        start_time=start,
        end_time=end,
        status=status.value,
        generation_source=GenerationSource.MANUAL.value,
    )
    db.add(lesson)
    await db.commit()
    return lesson


async def make_slot(
    db: AsyncSession,
    school_class: SchoolClass,
    day_of_week: DayOfWeek = DayOfWeek.MONDAY,
    start: time = time(10, 0),
    end: time = time(11, 0),
    semester: Optional[Semester] = None,
) -> ScheduleSlot:
    slot = ScheduleSlot(
        class_id=school_class.id,
        semester_id=semester.id if semester else None,
        day_of_week=day_of_week.value,
        start_time=start,
        end_time=end,
    )
    db.add(slot)
    await db.commit()
    return slot


async def make_semester(db: AsyncSession, start: date, end: date, name: str = "Spring") -> Semester:
    year = AcademicYear(name=f"{start.year}", start_date=start, end_date=end, is_current=True)
    db.add(year)
    await db.flush()
    semester = Semester(academic_year_id=year.id, name=name, start_date=start, end_date=end)
    db.add(semester)
    await db.commit()
    return semester


async def make_holiday(db: AsyncSession, holiday_date: date, name: str = "Holiday") -> PublicHoliday:
    holiday = PublicHoliday(name=name, holiday_date=holiday_date)
    db.add(holiday)
    await db.commit()
    return holiday


async def make_break(db: AsyncSession, start: date, end: date, name: str = "Spring break") -> TeachingBreak:
    teaching_break = TeachingBreak(name=name, start_date=start, end_date=end)
    db.add(teaching_break)
    await db.commit()
    return teaching_break
