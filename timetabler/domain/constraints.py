"""Domain-level validation for scheduling configuration and class intake."""

from __future__ import annotations

import math
from dataclasses import dataclass

from timetabler.domain.models import CLASS_TYPES, PROGRAM_KINDS, ClassRequest
from timetabler.domain.time_model import duration_minutes, to_minutes_since_midnight


@dataclass(frozen=True)
class SchedulingConfig:
    schedule_days: tuple[str, ...]
    day_start_time: str
    day_end_time: str
    slot_minutes: int
    strand_days: tuple[str, ...]
    strand_max_days: int


def validate_scheduling_config(config: SchedulingConfig) -> None:
    if not config.schedule_days:
        raise ValueError("schedule_days must not be empty")
    if len(set(config.schedule_days)) != len(config.schedule_days):
        raise ValueError("schedule_days must not repeat a day")
    start = to_minutes_since_midnight(config.day_start_time)
    end = to_minutes_since_midnight(config.day_end_time)
    if start >= end:
        raise ValueError("day_start_time must be before day_end_time")
    if config.slot_minutes <= 0:
        raise ValueError("slot_minutes must be > 0")
    if (end - start) % config.slot_minutes != 0:
        raise ValueError("daily window must be a whole number of slots")
    unknown_strand_days = set(config.strand_days) - set(config.schedule_days)
    if unknown_strand_days:
        raise ValueError(f"strand_days not in schedule_days: {sorted(unknown_strand_days)}")
    if config.strand_max_days <= 0:
        raise ValueError("strand_max_days must be > 0")


def class_request_problems(request: ClassRequest) -> list[str]:
    """Return every intake problem with ``request``; empty means acceptable."""
    problems: list[str] = []
    if not str(request.request_id).strip():
        problems.append("request_id is required")
    if not request.subject.strip():
        problems.append("subject is required")
    if not request.department.strip():
        problems.append("department is required")
    if not request.instructor.strip():
        problems.append("instructor is required")
    if request.class_type not in CLASS_TYPES:
        problems.append(f"class_type must be one of {sorted(CLASS_TYPES)}")
    if request.program_kind not in PROGRAM_KINDS:
        problems.append(f"program_kind must be one of {sorted(PROGRAM_KINDS)}")
    duration = request.duration_hours
    if not isinstance(duration, (int, float)) or isinstance(duration, bool):
        problems.append("duration_hours must be a number")
    elif math.isnan(duration) or math.isinf(duration) or duration <= 0:
        problems.append("duration_hours must be > 0")
    elif duration_minutes(duration) <= 0:
        problems.append("duration_hours must be at least one minute")
    return problems
