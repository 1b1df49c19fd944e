"""Schedulable week: days, daily window and slot granularity."""

from __future__ import annotations

import re
from dataclasses import dataclass

from timetabler.utils.config import Settings


_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
MINUTES_PER_DAY = 24 * 60


def to_minutes_since_midnight(time_value: str) -> int:
    """Convert ``HH:MM`` wall-clock text into minutes since midnight."""
    match = _TIME_PATTERN.match(time_value.strip())
    if match is None:
        raise ValueError(f"time must follow HH:MM format: {time_value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 24 or not 0 <= minutes <= 59 or (hours == 24 and minutes):
        raise ValueError(f"time is out of range: {time_value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap test for ``[start_a, end_a)`` and ``[start_b, end_b)``."""
    return start_a < end_b and start_b < end_a


def duration_minutes(duration_hours: float) -> int:
    return int(round(duration_hours * 60))


@dataclass(frozen=True)
class TimeModel:
    days: tuple[str, ...]
    window_start: int
    window_end: int
    slot_minutes: int

    def __post_init__(self) -> None:
        if not self.days:
            raise ValueError("time model needs at least one day")
        if len(set(self.days)) != len(self.days):
            raise ValueError("time model days must be unique")
        if self.window_start >= self.window_end:
            raise ValueError("daily window start must be before its end")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be > 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimeModel":
        return cls(
            days=tuple(settings.schedule_days),
            window_start=to_minutes_since_midnight(settings.day_start_time),
            window_end=to_minutes_since_midnight(settings.day_end_time),
            slot_minutes=settings.slot_minutes,
        )

    def slot_starts(self) -> list[int]:
        return list(range(self.window_start, self.window_end, self.slot_minutes))

    def candidate_start_times(self, length_minutes: int) -> list[int]:
        """Slot boundaries from which a class of ``length_minutes`` still fits."""
        return [
            start
            for start in self.slot_starts()
            if start + length_minutes <= self.window_end
        ]

    def end_minutes(self, start: int, duration_hours: float) -> int:
        return start + duration_minutes(duration_hours)

    def fits(self, start: int, end: int) -> bool:
        return self.window_start <= start and end <= self.window_end
