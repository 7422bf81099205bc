"""Half-open time ranges: ``[start, end)``."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError("TimeRange end must not precede start")

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> "TimeRange":
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeRange") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    # Touching endpoints are not an overlap.
    return start_a < end_b and end_a > start_b


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return ``[00:00 of day, 00:00 of next day)``."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def parse_clock(value: str) -> time:
    """Parse an "HH:MM" setting into a time."""
    hours, minutes = value.strip().split(":")[:2]
    return time(int(hours), int(minutes))


def iter_slots(
    window_start: datetime, window_end: datetime, step_minutes: int, length_minutes: int
) -> Iterator[TimeRange]:
    """Yield ranges of ``length_minutes`` every ``step_minutes`` that fit inside the window."""
    step = timedelta(minutes=step_minutes)
    length = timedelta(minutes=length_minutes)
    current = window_start
    while current + length <= window_end:
        yield TimeRange(current, current + length)
        current += step
