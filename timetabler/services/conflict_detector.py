"""Room, instructor and fixed-schedule conflict checks for a proposed slot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from timetabler.domain.models import ScheduledSession
from timetabler.domain.time_model import intervals_overlap, to_minutes_since_midnight
from timetabler.services.fixed_schedule_registry import FixedScheduleRegistry


FIXED_SCHEDULE_CONFLICT = "fixed_schedule"
ROOM_CONFLICT = "room"
INSTRUCTOR_CONFLICT = "instructor"


@dataclass(frozen=True)
class Conflict:
    kind: str
    detail: str


def _session_bounds(session: ScheduledSession) -> tuple[int, int]:
    return (
        to_minutes_since_midnight(session.start_time),
        to_minutes_since_midnight(session.end_time),
    )


class ConflictDetector:
    """Stateless apart from the fixed-schedule snapshot it was built with."""

    def __init__(self, registry: FixedScheduleRegistry) -> None:
        self._registry = registry

    def instructor_conflict(
        self,
        day: str,
        start: int,
        end: int,
        instructor: str,
        already_placed: Iterable[ScheduledSession],
    ) -> Optional[ScheduledSession]:
        for session in already_placed:
            if session.day != day or session.instructor != instructor:
                continue
            session_start, session_end = _session_bounds(session)
            if intervals_overlap(start, end, session_start, session_end):
                return session
        return None

    def room_conflict(
        self,
        day: str,
        start: int,
        end: int,
        room_id: str,
        already_placed: Iterable[ScheduledSession],
    ) -> Optional[ScheduledSession]:
        for session in already_placed:
            if session.day != day or session.room_id != room_id:
                continue
            session_start, session_end = _session_bounds(session)
            if intervals_overlap(start, end, session_start, session_end):
                return session
        return None

    def find_conflict(
        self,
        day: str,
        start: int,
        end: int,
        room_id: str,
        instructor: str,
        already_placed: Iterable[ScheduledSession],
    ) -> Optional[Conflict]:
        blocking = self._registry.blocking_schedule(day, start, end)
        if blocking is not None:
            return Conflict(
                kind=FIXED_SCHEDULE_CONFLICT,
                detail=f"{blocking.name} ({blocking.start_time}-{blocking.end_time})",
            )
        placed = list(already_placed)
        clash = self.room_conflict(day, start, end, room_id, placed)
        if clash is not None:
            return Conflict(kind=ROOM_CONFLICT, detail=f"room {room_id} taken by {clash.request_id}")
        clash = self.instructor_conflict(day, start, end, instructor, placed)
        if clash is not None:
            return Conflict(
                kind=INSTRUCTOR_CONFLICT,
                detail=f"{instructor} already teaching {clash.request_id}",
            )
        return None

    def would_conflict(
        self,
        day: str,
        start: int,
        end: int,
        room_id: str,
        instructor: str,
        already_placed: Iterable[ScheduledSession],
    ) -> bool:
        return self.find_conflict(day, start, end, room_id, instructor, already_placed) is not None
