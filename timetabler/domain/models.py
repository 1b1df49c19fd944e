"""Domain models for class placement and timetable runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


LECTURE = "lecture"
LABORATORY = "laboratory"
CLASS_TYPES = frozenset({LECTURE, LABORATORY})

PROGRAM = "program"
STRAND = "strand"
PROGRAM_KINDS = frozenset({PROGRAM, STRAND})


@dataclass(frozen=True)
class Department:
    department_id: str
    code: str
    name: str = ""


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    department: Optional[str] = None
    exclusive: bool = False
    priority: bool = False
    tags: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class FixedSchedule:
    schedule_id: str
    name: str
    day: str
    start_time: str
    end_time: str
    allow_classes: bool = False


@dataclass(frozen=True)
class ClassRequest:
    request_id: str
    subject: str
    duration_hours: float
    class_type: str
    department: str
    instructor: str
    subject_key: Optional[str] = None
    program_kind: str = PROGRAM
    companion_of: Optional[str] = None

    @property
    def grouping_key(self) -> str:
        return self.subject_key or self.subject

    @property
    def label(self) -> str:
        return f"{self.subject} ({self.department}, {self.duration_hours:g} hrs, {self.class_type})"


@dataclass(frozen=True)
class PlacementHint:
    """Ordering hints layered over the randomized day/time search."""

    preferred_day: Optional[str] = None
    preferred_start: Optional[int] = None
    excluded_days: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ScheduledSession:
    request_id: str
    day: str
    start_time: str
    end_time: str
    room_id: str
    instructor: str
    subject: str = ""
    department: str = ""
    class_type: str = LECTURE


@dataclass(frozen=True)
class RejectedRequest:
    request: ClassRequest
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class SchedulingRunResult:
    scheduled: list[ScheduledSession]
    unscheduled: list[ClassRequest]
    rejected: list[RejectedRequest] = field(default_factory=list)
    cancelled: bool = False
    room_usage: dict[str, int] = field(default_factory=dict)
    failure_reasons: dict[str, str] = field(default_factory=dict)

    @property
    def total_valid(self) -> int:
        return len(self.scheduled) + len(self.unscheduled)
