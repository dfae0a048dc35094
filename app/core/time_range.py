"""24-hour time parsing and half-open [start, end) time ranges."""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Union

from app.core.exceptions import ValidationError


def parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time. Seconds are truncated."""
    if isinstance(v, time):
        return v.replace(second=0, microsecond=0)
    if isinstance(v, str):
        v = v.strip()
        try:
            if len(v) == 5:  # HH:MM
                parsed = datetime.strptime(v, "%H:%M").time()
            else:
                parsed = datetime.strptime(v, "%H:%M:%S").time()
        except ValueError:
            raise ValueError(f"Invalid time '{v}': expected 24-hour HH:MM")
        return parsed.replace(second=0)
    raise ValueError("Time must be 24-hour string (e.g. 09:00, 09:45) or time")


def format_time_24(t: time) -> str:
    return t.strftime("%H:%M")


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < 24 * 60:
        raise ValueError("minutes must fall within a single day")
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class TimeRange:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationError(
                f"end_time ({format_time_24(self.end)}) must be after start_time ({format_time_24(self.start)})"
            )

    @classmethod
    def parse(cls, start: Union[str, time], end: Union[str, time]) -> "TimeRange":
        try:
            return cls(parse_time_24(start), parse_time_24(end))
        except ValueError as e:
            raise ValidationError(str(e))

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)

    def overlaps(self, other: "TimeRange") -> bool:
        # Touching ranges (09:00-10:00 and 10:00-11:00) do not overlap.
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{format_time_24(self.start)}-{format_time_24(self.end)}"


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    return a.overlaps(b)
