"""Read-only registry of administrator-defined recurring time blocks."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from timetabler.domain.models import FixedSchedule
from timetabler.domain.time_model import intervals_overlap, to_minutes_since_midnight
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


class FixedScheduleRegistry:
    """Answers whether a day/interval collides with a blocking fixed schedule."""

    def __init__(self, schedules: Iterable[FixedSchedule] = ()) -> None:
        self._blocking_by_day: dict[str, list[tuple[int, int, FixedSchedule]]] = defaultdict(list)
        self._schedules: list[FixedSchedule] = []
        for schedule in schedules:
            start = to_minutes_since_midnight(schedule.start_time)
            end = to_minutes_since_midnight(schedule.end_time)
            if start >= end:
                raise ValueError(
                    f"fixed schedule {schedule.schedule_id!r} must start before it ends"
                )
            self._schedules.append(schedule)
            if schedule.allow_classes:
                continue
            self._blocking_by_day[schedule.day].append((start, end, schedule))
        logger.debug(
            "Fixed schedule registry loaded | schedules=%s | blocking=%s",
            len(self._schedules),
            sum(len(entries) for entries in self._blocking_by_day.values()),
        )

    @property
    def schedules(self) -> tuple[FixedSchedule, ...]:
        return tuple(self._schedules)

    def blocking_schedule(self, day: str, start: int, end: int) -> Optional[FixedSchedule]:
        for block_start, block_end, schedule in self._blocking_by_day.get(day, ()):
            if intervals_overlap(start, end, block_start, block_end):
                return schedule
        return None

    def is_blocked(self, day: str, start: int, end: int) -> bool:
        return self.blocking_schedule(day, start, end) is not None
