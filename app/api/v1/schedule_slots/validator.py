"""
Overlap rules for recurring schedule slots.

Same class, same day, overlapping time: hard rejection.
Other classes sharing the teacher or the classroom: informational overlap,
the caller decides whether to proceed.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from app.core.config import settings
from app.core.enums import DayOfWeek
from app.core.time_range import TimeRange, from_minutes, parse_time_24, to_minutes


@dataclass(frozen=True)
class SlotEntry:
    day_of_week: DayOfWeek
    time_range: TimeRange
    id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    class_name: Optional[str] = None
    shared_resource: Optional[str] = None  # "teacher" | "classroom", for slots of other classes

    def collides_with(self, other: "SlotEntry") -> bool:
        return self.day_of_week == other.day_of_week and self.time_range.overlaps(other.time_range)


@dataclass
class SlotValidation:
    ok: bool
    reason: Optional[str] = None
    overlapping_slot: Optional[SlotEntry] = None
    existing_overlaps: List[SlotEntry] = field(default_factory=list)

    @property
    def has_existing_overlap(self) -> bool:
        return bool(self.existing_overlaps)


@dataclass(frozen=True)
class SlotSuggestion:
    day_of_week: DayOfWeek
    start_time: time
    end_time: time


@dataclass(frozen=True)
class SuggestionConstraints:
    day_start: time
    day_end: time
    step_minutes: int = 30
    days: Tuple[DayOfWeek, ...] = tuple(DayOfWeek)

    @classmethod
    def from_settings(cls) -> "SuggestionConstraints":
        return cls(
            day_start=parse_time_24(settings.schedule_day_start),
            day_end=parse_time_24(settings.schedule_day_end),
            step_minutes=settings.suggestion_step_minutes,
        )


def validate_slot(
    candidate: SlotEntry,
    existing_for_class: Iterable[SlotEntry],
    existing_for_other_resources: Iterable[SlotEntry] = (),
) -> SlotValidation:
    for slot in existing_for_class:
        if candidate.id is not None and slot.id == candidate.id:
            continue
        if candidate.collides_with(slot):
            return SlotValidation(
                ok=False,
                reason=(
                    f"Overlaps existing slot {slot.day_of_week.value} {slot.time_range} of this class"
                ),
                overlapping_slot=slot,
            )

    overlaps = [
        slot
        for slot in existing_for_other_resources
        if slot.id != candidate.id and candidate.collides_with(slot)
    ]
    return SlotValidation(ok=True, existing_overlaps=overlaps)


def suggest_alternatives(
    candidate: SlotEntry,
    known_slots: Sequence[SlotEntry],
    max_suggestions: int,
    constraints: Optional[SuggestionConstraints] = None,
) -> List[SlotSuggestion]:
    """
    Same-duration alternatives that collide with none of known_slots.

    Ordered by day (Monday first) then by start time, so the output is fully
    determined by the inputs.
    """
    constraints = constraints or SuggestionConstraints.from_settings()
    duration = candidate.time_range.duration_minutes
    first = to_minutes(constraints.day_start)
    last_start = to_minutes(constraints.day_end) - duration
    suggestions: List[SlotSuggestion] = []
    if max_suggestions <= 0 or constraints.step_minutes <= 0:
        return suggestions

    for day in sorted(constraints.days, key=lambda d: d.index):
        busy = [s.time_range for s in known_slots if s.day_of_week == day and s.id != candidate.id]
        for start in range(first, last_start + 1, constraints.step_minutes):
            option = TimeRange(from_minutes(start), from_minutes(start + duration))
            if day == candidate.day_of_week and option == candidate.time_range:
                continue
            if any(option.overlaps(b) for b in busy):
                continue
            suggestions.append(SlotSuggestion(day, option.start, option.end))
            if len(suggestions) >= max_suggestions:
                return suggestions
    return suggestions
