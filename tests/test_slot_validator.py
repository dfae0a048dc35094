"""Unit tests for recurring slot overlap rules and alternative suggestions."""

from datetime import time
from uuid import uuid4

from app.api.v1.schedule_slots.validator import (
    SlotEntry,
    SlotSuggestion,
    SuggestionConstraints,
    suggest_alternatives,
    validate_slot,
)
from app.core.enums import DayOfWeek
from app.core.time_range import TimeRange


def _slot(day: DayOfWeek, start: str, end: str, **kwargs) -> SlotEntry:
    return SlotEntry(day_of_week=day, time_range=TimeRange.parse(start, end), **kwargs)


def test_same_class_overlap_is_rejected() -> None:
    existing = _slot(DayOfWeek.MONDAY, "09:30", "10:30", id=uuid4())
    result = validate_slot(_slot(DayOfWeek.MONDAY, "10:00", "11:00"), [existing])
    assert result.ok is False
    assert result.overlapping_slot == existing
    assert "Monday 09:30-10:30" in result.reason


def test_touching_or_other_day_slots_are_accepted() -> None:
    existing = [
        _slot(DayOfWeek.MONDAY, "09:00", "10:00", id=uuid4()),
        _slot(DayOfWeek.TUESDAY, "10:00", "11:00", id=uuid4()),
    ]
    result = validate_slot(_slot(DayOfWeek.MONDAY, "10:00", "11:00"), existing)
    assert result.ok is True
    assert result.has_existing_overlap is False


def test_edited_slot_does_not_collide_with_itself() -> None:
    slot_id = uuid4()
    existing = [_slot(DayOfWeek.MONDAY, "10:00", "11:00", id=slot_id)]
    result = validate_slot(_slot(DayOfWeek.MONDAY, "10:30", "11:30", id=slot_id), existing)
    assert result.ok is True


def test_shared_teacher_overlap_is_informational() -> None:
    other = _slot(DayOfWeek.MONDAY, "10:00", "11:00", id=uuid4(), class_name="Physics 8B", shared_resource="teacher")
    result = validate_slot(_slot(DayOfWeek.MONDAY, "10:30", "11:30"), [], [other])
    assert result.ok is True
    assert result.has_existing_overlap is True
    assert result.existing_overlaps == [other]


def test_suggestions_are_ordered_by_day_then_time() -> None:
    constraints = SuggestionConstraints(
        day_start=time(9, 0),
        day_end=time(12, 0),
        step_minutes=60,
        days=(DayOfWeek.TUESDAY, DayOfWeek.MONDAY),
    )
    known = [
        _slot(DayOfWeek.MONDAY, "09:00", "10:00"),
        _slot(DayOfWeek.MONDAY, "11:00", "12:00"),
    ]
    candidate = _slot(DayOfWeek.MONDAY, "10:00", "11:00")

    assert suggest_alternatives(candidate, known, 5, constraints) == [
        SlotSuggestion(DayOfWeek.TUESDAY, time(9, 0), time(10, 0)),
        SlotSuggestion(DayOfWeek.TUESDAY, time(10, 0), time(11, 0)),
        SlotSuggestion(DayOfWeek.TUESDAY, time(11, 0), time(12, 0)),
    ]
    assert len(suggest_alternatives(candidate, known, 2, constraints)) == 2


def test_suggestions_keep_duration_and_avoid_busy_times() -> None:
    constraints = SuggestionConstraints(
        day_start=time(9, 0),
        day_end=time(12, 0),
        step_minutes=30,
        days=(DayOfWeek.MONDAY,),
    )
    known = [_slot(DayOfWeek.MONDAY, "10:30", "11:30")]
    candidate = _slot(DayOfWeek.MONDAY, "10:00", "11:00")

    assert suggest_alternatives(candidate, known, 5, constraints) == [
        SlotSuggestion(DayOfWeek.MONDAY, time(9, 0), time(10, 0)),
        SlotSuggestion(DayOfWeek.MONDAY, time(9, 30), time(10, 30)),
    ]


def test_no_suggestions_when_max_is_zero() -> None:
    candidate = _slot(DayOfWeek.MONDAY, "10:00", "11:00")
    assert suggest_alternatives(candidate, [], 0) == []
