"""
Lesson status machine and the time-based rules around it.

    Scheduled | Make Up  -> Conducted   (not earlier than start - grace)
    Scheduled | Make Up  -> Cancelled   (reason required)
    Scheduled | Make Up  -> No Show
    Scheduled | Make Up  -> reschedule  (status kept, conflict-checked)
    Conducted            -> edit        (unless locked)
    Cancelled            -> create make-up (once)

Everything else is rejected with InvalidTransitionError.
"""

import math
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Optional, Tuple

from app.core import clock
from app.core.config import settings
from app.core.enums import EditLock, LessonAction, LessonStatus
from app.core.exceptions import InvalidTransitionError, LessonLocked, ValidationError
from app.core.models import Lesson

ACTIONABLE_STATUSES: FrozenSet[LessonStatus] = frozenset({LessonStatus.SCHEDULED, LessonStatus.MAKE_UP})

CANCELLATION_REASON_MIN_LENGTH = 5
CANCELLATION_REASON_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 1000

# action -> statuses it is legal from, and the status it leads to (None keeps the current one)
TRANSITIONS: Dict[LessonAction, Tuple[FrozenSet[LessonStatus], Optional[LessonStatus]]] = {
    LessonAction.CONDUCT: (ACTIONABLE_STATUSES, LessonStatus.CONDUCTED),
    LessonAction.CANCEL: (ACTIONABLE_STATUSES, LessonStatus.CANCELLED),
    LessonAction.NO_SHOW: (ACTIONABLE_STATUSES, LessonStatus.NO_SHOW),
    LessonAction.RESCHEDULE: (ACTIONABLE_STATUSES, None),
    LessonAction.EDIT: (ACTIONABLE_STATUSES | {LessonStatus.CONDUCTED}, None),
    LessonAction.DELETE: (frozenset({LessonStatus.SCHEDULED}), None),
    LessonAction.CREATE_MAKEUP: (frozenset({LessonStatus.CANCELLED}), None),
}


def can_perform(status: LessonStatus, action: LessonAction) -> bool:
    allowed, _ = TRANSITIONS[action]
    return status in allowed


def ensure_transition(status: LessonStatus, action: LessonAction) -> LessonStatus:
    """Return the status after action, or raise if action is illegal from status."""
    allowed, target = TRANSITIONS[action]
    if status not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} a lesson with status '{status.value}'"
        )
    return target or status


def conduct_opens_at(lesson: Lesson, grace_minutes: Optional[int] = None) -> datetime:
    if grace_minutes is None:
        grace_minutes = settings.conduct_grace_minutes
    start = clock.lesson_datetime(lesson.scheduled_date, lesson.start_time)
    return start - timedelta(minutes=grace_minutes)


def cannot_conduct_reason(
    lesson: Lesson,
    now: Optional[datetime] = None,
    grace_minutes: Optional[int] = None,
) -> Optional[str]:
    """User-facing reason why the lesson cannot be conducted now; None when it can."""
    if not can_perform(lesson.lesson_status, LessonAction.CONDUCT):
        return "This lesson cannot be conducted in its current status."
    now = clock.localize(now) if now else clock.now()
    opens_at = conduct_opens_at(lesson, grace_minutes)
    if now >= opens_at:
        return None
    minutes = math.ceil((opens_at - now).total_seconds() / 60)
    return (
        f"This lesson starts at {lesson.start_time.strftime('%H:%M')}. "
        f"You can conduct it in {minutes} minute{'' if minutes == 1 else 's'}."
    )


def can_conduct(lesson: Lesson, now: Optional[datetime] = None, grace_minutes: Optional[int] = None) -> bool:
    return cannot_conduct_reason(lesson, now, grace_minutes) is None


def edit_lock(lesson: Lesson, today: Optional[date] = None) -> EditLock:
    if lesson.lesson_status != LessonStatus.CONDUCTED:
        return EditLock.NONE
    today = today or clock.today()
    if lesson.scheduled_date < today:
        return EditLock.LOCKED
    if lesson.scheduled_date == today:
        return EditLock.GRACE_PERIOD
    return EditLock.NONE


def ensure_editable(lesson: Lesson, today: Optional[date] = None) -> bool:
    """
    Raise LessonLocked for a conducted lesson from a previous day.
    Returns True when the edit must be audited (same-day grace period).
    """
    ensure_transition(lesson.lesson_status, LessonAction.EDIT)
    lock = edit_lock(lesson, today)
    if lock == EditLock.LOCKED:
        raise LessonLocked()
    return lock == EditLock.GRACE_PERIOD


def needs_documentation(lesson: Lesson, now: Optional[datetime] = None) -> bool:
    """Still Scheduled/Make Up although the lesson has already ended."""
    if lesson.lesson_status not in ACTIONABLE_STATUSES:
        return False
    now = clock.localize(now) if now else clock.now()
    return now > clock.lesson_datetime(lesson.scheduled_date, lesson.end_time)


def clean_cancellation_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("cancellation_reason is required")
    if len(reason) < CANCELLATION_REASON_MIN_LENGTH:
        raise ValidationError(
            f"cancellation_reason must be at least {CANCELLATION_REASON_MIN_LENGTH} characters"
        )
    if len(reason) > CANCELLATION_REASON_MAX_LENGTH:
        raise ValidationError(
            f"cancellation_reason must be at most {CANCELLATION_REASON_MAX_LENGTH} characters"
        )
    return reason


def conduct(lesson: Lesson, now: Optional[datetime] = None, notes: Optional[str] = None) -> Lesson:
    ensure_transition(lesson.lesson_status, LessonAction.CONDUCT)
    now = clock.localize(now) if now else clock.now()
    reason = cannot_conduct_reason(lesson, now)
    if reason:
        raise InvalidTransitionError(reason)
    lesson.status = LessonStatus.CONDUCTED.value
    lesson.conducted_at = now
    if notes is not None:
        lesson.notes = notes
    return lesson


def cancel(lesson: Lesson, reason: Optional[str]) -> Lesson:
    ensure_transition(lesson.lesson_status, LessonAction.CANCEL)
    lesson.cancellation_reason = clean_cancellation_reason(reason)
    lesson.status = LessonStatus.CANCELLED.value
    return lesson


def mark_no_show(lesson: Lesson, notes: Optional[str] = None) -> Lesson:
    ensure_transition(lesson.lesson_status, LessonAction.NO_SHOW)
    lesson.status = LessonStatus.NO_SHOW.value
    if notes is not None:
        lesson.notes = notes
    return lesson
