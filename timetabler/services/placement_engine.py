"""Greedy randomized placement of a single class request."""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass
from typing import MutableMapping, Optional, Sequence

from timetabler.domain.models import (
    STRAND,
    ClassRequest,
    PlacementHint,
    Room,
    ScheduledSession,
)
from timetabler.domain.time_model import TimeModel, duration_minutes, format_minutes
from timetabler.services.conflict_detector import INSTRUCTOR_CONFLICT, ConflictDetector
from timetabler.services.room_resolver import RoomCompatibilityResolver
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class PlacementOutcome:
    session: Optional[ScheduledSession]
    reason: str = ""
    combinations_tried: int = 0


def _move_to_front(items: list, value) -> None:
    if value in items:
        items.remove(value)
        items.insert(0, value)


class PlacementEngine:
    """Searches shuffled (day, start, room) combinations for the first free one.

    ``already_placed`` and ``room_usage`` belong to the caller; the engine only
    reads the former and increments the latter on a successful commit.
    Candidate rooms are resolved once per attempt and reused for every slot.
    """

    def __init__(
        self,
        time_model: TimeModel,
        resolver: RoomCompatibilityResolver,
        detector: ConflictDetector,
        *,
        rng: Optional[random.Random] = None,
        strand_days: Sequence[str] = (),
        strand_max_days: int = 4,
    ) -> None:
        self._time_model = time_model
        self._resolver = resolver
        self._detector = detector
        self._rng = rng or random.Random()
        self._strand_days = tuple(day for day in strand_days if day in time_model.days)
        self._strand_max_days = strand_max_days

    def _candidate_days(self, request: ClassRequest, hint: Optional[PlacementHint]) -> list[str]:
        if request.program_kind == STRAND and self._strand_days:
            days = list(self._strand_days)
            self._rng.shuffle(days)
            days = days[: self._strand_max_days]
        else:
            days = list(self._time_model.days)
            self._rng.shuffle(days)
        if hint is not None:
            days = [day for day in days if day not in hint.excluded_days]
            if hint.preferred_day is not None:
                _move_to_front(days, hint.preferred_day)
        return days

    def _candidate_starts(self, length: int, hint: Optional[PlacementHint]) -> list[int]:
        starts = self._time_model.candidate_start_times(length)
        self._rng.shuffle(starts)
        if hint is not None and hint.preferred_start is not None:
            _move_to_front(starts, hint.preferred_start)
        return starts

    def attempt(
        self,
        request: ClassRequest,
        already_placed: Sequence[ScheduledSession],
        room_usage: MutableMapping[str, int],
        hint: Optional[PlacementHint] = None,
    ) -> PlacementOutcome:
        length = duration_minutes(request.duration_hours)
        days = self._candidate_days(request, hint)
        starts = self._candidate_starts(length, hint)
        if not days:
            return PlacementOutcome(session=None, reason="no schedulable day left for this class")
        if not starts:
            return PlacementOutcome(
                session=None,
                reason=(
                    f"{request.duration_hours:g}h does not fit the daily window "
                    f"{format_minutes(self._time_model.window_start)}-"
                    f"{format_minutes(self._time_model.window_end)}"
                ),
            )

        rooms = self._resolver.candidate_rooms(request.department, request.class_type)
        if not rooms:
            return PlacementOutcome(
                session=None,
                reason=f"no compatible room for department {request.department}",
            )

        conflict_counts: Counter[str] = Counter()
        tried = 0
        for day in days:
            for start in starts:
                end = self._time_model.end_minutes(start, request.duration_hours)
                if not self._time_model.fits(start, end):
                    continue
                tried += 1
                free_rooms: list[Room] = []
                for room in rooms:
                    conflict = self._detector.find_conflict(
                        day, start, end, room.room_id, request.instructor, already_placed
                    )
                    if conflict is None:
                        free_rooms.append(room)
                    else:
                        conflict_counts[conflict.kind] += 1
                if not free_rooms:
                    continue

                # sorted() is stable, so equal usage keeps the resolver's order.
                free_rooms = sorted(free_rooms, key=lambda item: room_usage.get(item.room_id, 0))
                room = free_rooms[0]
                if self._detector.instructor_conflict(
                    day, start, end, request.instructor, already_placed
                ) is not None:
                    conflict_counts[INSTRUCTOR_CONFLICT] += 1
                    continue

                session = ScheduledSession(
                    request_id=request.request_id,
                    day=day,
                    start_time=format_minutes(start),
                    end_time=format_minutes(end),
                    room_id=room.room_id,
                    instructor=request.instructor,
                    subject=request.subject,
                    department=request.department,
                    class_type=request.class_type,
                )
                room_usage[room.room_id] = room_usage.get(room.room_id, 0) + 1
                logger.debug(
                    "Placed | request_id=%s | day=%s | time=%s-%s | room=%s | tried=%s",
                    request.request_id,
                    day,
                    session.start_time,
                    session.end_time,
                    room.room_id,
                    tried,
                )
                return PlacementOutcome(session=session, combinations_tried=tried)

        summary = ", ".join(
            f"{kind}={count}" for kind, count in sorted(conflict_counts.items())
        )
        reason = f"every slot conflicted ({summary})" if summary else "no free slot"
        return PlacementOutcome(session=None, reason=reason, combinations_tried=tried)

    def place(
        self,
        request: ClassRequest,
        already_placed: Sequence[ScheduledSession],
        room_usage: MutableMapping[str, int],
        hint: Optional[PlacementHint] = None,
    ) -> Optional[ScheduledSession]:
        return self.attempt(request, already_placed, room_usage, hint).session
