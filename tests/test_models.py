from datetime import date, time

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import DayOfWeek
from app.core.models import Lesson, ScheduleSlot, TeachingBreak
from tests.factories import make_class


@pytest.mark.asyncio
@pytest.mark.parametrize("start,end", [(time(11, 0), time(10, 0)), (time(10, 0), time(10, 0))])
async def test_lesson_rejects_empty_or_inverted_time_range(db_session: AsyncSession, start, end) -> None:
    maths = await make_class(db_session)
    db_session.add(
        Lesson(
            class_id=maths.id,
            teacher_id=maths.teacher_id,
            scheduled_date=date(2026, 3, 2),
            start_time=start,
            end_time=end,
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_schedule_slot_rejects_inverted_time_range(db_session: AsyncSession) -> None:
    maths = await make_class(db_session)
    db_session.add(
        ScheduleSlot(
            class_id=maths.id,
            day_of_week=DayOfWeek.MONDAY.value,
            start_time=time(12, 0),
            end_time=time(9, 0),
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_schedule_slot_rejects_effective_to_before_effective_from(db_session: AsyncSession) -> None:
    maths = await make_class(db_session)
    db_session.add(
        ScheduleSlot(
            class_id=maths.id,
            day_of_week=DayOfWeek.MONDAY.value,
            start_time=time(9, 0),
            end_time=time(10, 0),
            effective_from=date(2026, 3, 31),
            effective_to=date(2026, 3, 1),
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_teaching_break_rejects_end_before_start(db_session: AsyncSession) -> None:
    db_session.add(TeachingBreak(name="Exam week", start_date=date(2026, 6, 12), end_date=date(2026, 6, 8)))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()
