from datetime import date, time
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.lessons.conflicts import find_conflicts, suggest_alternative_dates
from app.core.enums import ConflictType, LessonStatus
from app.core.exceptions import NotFoundError
from app.core.time_range import TimeRange
from tests.factories import make_class, make_classroom, make_lesson

DAY = date(2026, 3, 4)


@pytest.mark.asyncio
async def test_own_lesson_conflicts_unless_excluded(db_session: AsyncSession) -> None:
    maths = await make_class(db_session)
    lesson = await make_lesson(db_session, maths, DAY, time(10, 0), time(11, 0))
    window = TimeRange(time(10, 30), time(11, 30))

    conflicts = await find_conflicts(db_session, maths.id, DAY, window)
    assert [c.conflicting_lesson_id for c in conflicts] == [lesson.id]
    assert conflicts[0].conflict_type == ConflictType.EXISTING_LESSON
    assert conflicts[0].conflicting_class_name == "Maths 7A"

    assert await find_conflicts(db_session, maths.id, DAY, window, exclude_lesson_id=lesson.id) == []


@pytest.mark.asyncio
async def test_teacher_and_classroom_conflicts(db_session: AsyncSession) -> None:
    teacher_id = uuid4()
    room = await make_classroom(db_session, "Room 12")
    maths = await make_class(db_session, "Maths 7A", teacher_id=teacher_id, classroom=room)
    physics = await make_class(db_session, "Physics 8B", teacher_id=teacher_id)
    art = await make_class(db_session, "Art 6C", classroom=room)
    same_teacher = await make_lesson(db_session, physics, DAY, time(9, 0), time(10, 15))
    same_room = await make_lesson(db_session, art, DAY, time(10, 45), time(12, 0))

    conflicts = await find_conflicts(db_session, maths.id, DAY, TimeRange(time(10, 0), time(11, 0)))

    by_lesson = {c.conflicting_lesson_id: c for c in conflicts}
    assert by_lesson[same_teacher.id].conflict_type == ConflictType.TEACHER_CONFLICT
    assert by_lesson[same_room.id].conflict_type == ConflictType.CLASSROOM_CONFLICT
    assert by_lesson[same_room.id].classroom_name == "Room 12"


@pytest.mark.asyncio
async def test_cancelled_touching_and_unrelated_lessons_are_ignored(db_session: AsyncSession) -> None:
    maths = await make_class(db_session)
    unrelated = await make_class(db_session, "Chemistry 9A")
    await make_lesson(db_session, maths, DAY, time(10, 0), time(11, 0), status=LessonStatus.CANCELLED)
    await make_lesson(db_session, maths, DAY, time(11, 0), time(12, 0))
    await make_lesson(db_session, unrelated, DAY, time(10, 0), time(11, 0))

    assert await find_conflicts(db_session, maths.id, DAY, TimeRange(time(10, 0), time(11, 0))) == []


@pytest.mark.asyncio
async def test_unknown_class_is_not_found(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await find_conflicts(db_session, uuid4(), DAY, TimeRange(time(10, 0), time(11, 0)))


def test_suggestions_skip_weekend() -> None:
    friday = date(2026, 3, 6)
    window = TimeRange(time(16, 0), time(17, 30))
    next_weekday, next_week = suggest_alternative_dates(friday, window)

    assert next_weekday.type == "next_weekday"
    assert next_weekday.scheduled_date == date(2026, 3, 9)
    assert next_weekday.label == "Next weekday (Mon Mar 9)"
    assert next_week.type == "next_week"
    assert next_week.scheduled_date == date(2026, 3, 13)
    assert (next_week.start_time, next_week.end_time) == (time(16, 0), time(17, 30))


def test_suggestions_midweek() -> None:
    suggestions = suggest_alternative_dates(DAY, TimeRange(time(10, 0), time(11, 0)))
    assert [s.scheduled_date for s in suggestions] == [date(2026, 3, 5), date(2026, 3, 11)]
