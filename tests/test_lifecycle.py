"""Unit tests for the lesson status machine and its time-based rules."""

from datetime import date, datetime, time, timezone
from uuid import uuid4

import pytest

from app.api.v1.lessons import lifecycle
from app.core.enums import EditLock, LessonAction, LessonStatus
from app.core.exceptions import InvalidTransitionError, LessonLocked, ValidationError
from app.core.models import Lesson

LESSON_DAY = date(2026, 3, 2)


def _lesson(status: LessonStatus = LessonStatus.SCHEDULED, day: date = LESSON_DAY) -> Lesson:
    return Lesson(
        id=uuid4(),
        class_id=uuid4(),
        teacher_id=uuid4(),
        scheduled_date=day,
        start_time=time(10, 0),
        end_time=time(11, 0),
        status=status.value,
    )


def _at(hour: int, minute: int = 0, day: date = LESSON_DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


LEGAL = {
    LessonStatus.SCHEDULED: {
        LessonAction.CONDUCT,
        LessonAction.CANCEL,
        LessonAction.NO_SHOW,
        LessonAction.RESCHEDULE,
        LessonAction.EDIT,
        LessonAction.DELETE,
    },
    LessonStatus.MAKE_UP: {
        LessonAction.CONDUCT,
        LessonAction.CANCEL,
        LessonAction.NO_SHOW,
        LessonAction.RESCHEDULE,
        LessonAction.EDIT,
    },
    LessonStatus.CONDUCTED: {LessonAction.EDIT},
    LessonStatus.CANCELLED: {LessonAction.CREATE_MAKEUP},
    LessonStatus.NO_SHOW: set(),
}


@pytest.mark.parametrize("status", list(LessonStatus))
@pytest.mark.parametrize("action", list(LessonAction))
def test_transition_table(status: LessonStatus, action: LessonAction) -> None:
    expected = action in LEGAL[status]
    assert lifecycle.can_perform(status, action) is expected
    if expected:
        lifecycle.ensure_transition(status, action)
    else:
        with pytest.raises(InvalidTransitionError):
            lifecycle.ensure_transition(status, action)


def test_transition_targets() -> None:
    assert lifecycle.ensure_transition(LessonStatus.SCHEDULED, LessonAction.CONDUCT) == LessonStatus.CONDUCTED
    assert lifecycle.ensure_transition(LessonStatus.MAKE_UP, LessonAction.CANCEL) == LessonStatus.CANCELLED
    assert lifecycle.ensure_transition(LessonStatus.SCHEDULED, LessonAction.NO_SHOW) == LessonStatus.NO_SHOW
    assert lifecycle.ensure_transition(LessonStatus.MAKE_UP, LessonAction.RESCHEDULE) == LessonStatus.MAKE_UP


def test_conduct_opens_grace_minutes_before_start() -> None:
    lesson = _lesson()
    assert lifecycle.cannot_conduct_reason(lesson, _at(9, 44), grace_minutes=15) == (
        "This lesson starts at 10:00. You can conduct it in 1 minute."
    )
    assert lifecycle.can_conduct(lesson, _at(9, 45), grace_minutes=15)
    assert lifecycle.can_conduct(lesson, _at(18, 0), grace_minutes=15)
    assert "in 60 minutes" in lifecycle.cannot_conduct_reason(lesson, _at(8, 45), grace_minutes=15)


def test_conduct_before_window_is_rejected() -> None:
    lesson = _lesson()
    with pytest.raises(InvalidTransitionError):
        lifecycle.conduct(lesson, _at(8, 0))
    assert lesson.status == LessonStatus.SCHEDULED.value


def test_conduct_sets_status_and_time() -> None:
    lesson = _lesson(LessonStatus.MAKE_UP)
    moment = _at(10, 5)
    lifecycle.conduct(lesson, moment, notes="Covered fractions")
    assert lesson.lesson_status == LessonStatus.CONDUCTED
    assert lesson.conducted_at == moment
    assert lesson.notes == "Covered fractions"


def test_conducted_lesson_cannot_be_conducted_again() -> None:
    with pytest.raises(InvalidTransitionError):
        lifecycle.conduct(_lesson(LessonStatus.CONDUCTED), _at(10, 5))


def test_edit_lock_boundaries() -> None:
    lesson = _lesson(LessonStatus.CONDUCTED)
    assert lifecycle.edit_lock(lesson, LESSON_DAY) == EditLock.GRACE_PERIOD
    assert lifecycle.edit_lock(lesson, date(2026, 3, 3)) == EditLock.LOCKED
    assert lifecycle.edit_lock(_lesson(LessonStatus.SCHEDULED), date(2026, 3, 3)) == EditLock.NONE


def test_same_day_edit_is_audited() -> None:
    assert lifecycle.ensure_editable(_lesson(LessonStatus.CONDUCTED), LESSON_DAY) is True
    assert lifecycle.ensure_editable(_lesson(LessonStatus.SCHEDULED), LESSON_DAY) is False


def test_next_day_edit_of_conducted_lesson_is_locked() -> None:
    with pytest.raises(LessonLocked):
        lifecycle.ensure_editable(_lesson(LessonStatus.CONDUCTED), date(2026, 3, 3))


def test_cancelled_lesson_is_not_editable() -> None:
    with pytest.raises(InvalidTransitionError):
        lifecycle.ensure_editable(_lesson(LessonStatus.CANCELLED), LESSON_DAY)


def test_needs_documentation_after_end() -> None:
    lesson = _lesson()
    assert lifecycle.needs_documentation(lesson, _at(10, 30)) is False
    assert lifecycle.needs_documentation(lesson, _at(11, 1)) is True
    assert lifecycle.needs_documentation(_lesson(LessonStatus.CONDUCTED), _at(12, 0)) is False


@pytest.mark.parametrize("reason", [None, "", "   ", "sick", "x" * 501])
def test_cancel_requires_reasonable_reason(reason) -> None:
    lesson = _lesson()
    with pytest.raises(ValidationError):
        lifecycle.cancel(lesson, reason)
    assert lesson.status == LessonStatus.SCHEDULED.value


def test_cancel_stores_trimmed_reason() -> None:
    lesson = lifecycle.cancel(_lesson(), "  Teacher is ill  ")
    assert lesson.lesson_status == LessonStatus.CANCELLED
    assert lesson.cancellation_reason == "Teacher is ill"


def test_no_show_only_from_actionable_statuses() -> None:
    assert lifecycle.mark_no_show(_lesson()).lesson_status == LessonStatus.NO_SHOW
    with pytest.raises(InvalidTransitionError):
        lifecycle.mark_no_show(_lesson(LessonStatus.CANCELLED))
