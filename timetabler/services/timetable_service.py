"""Timetable generation: snapshot the catalog, run the placement core, persist."""

from __future__ import annotations

import random
import threading
from typing import Optional, Sequence

from timetabler.domain.constraints import SchedulingConfig, validate_scheduling_config
from timetabler.domain.models import (
    ClassRequest,
    Department,
    FixedSchedule,
    Room,
    ScheduledSession,
    SchedulingRunResult,
)
from timetabler.domain.time_model import TimeModel
from timetabler.repository.data_repository import DataRepository
from timetabler.services.conflict_detector import ConflictDetector
from timetabler.services.fixed_schedule_registry import FixedScheduleRegistry
from timetabler.services.orchestrator import (
    ProgressCallback,
    SchedulingInputError,
    SchedulingRunOrchestrator,
)
from timetabler.services.placement_engine import PlacementEngine
from timetabler.services.room_resolver import RoomCompatibilityResolver
from timetabler.utils.config import Settings, get_settings
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


class ScheduleValidationError(Exception):
    """Raised when catalog data or settings make a run impossible to set up."""


def scheduling_config_from_settings(settings: Settings) -> SchedulingConfig:
    return SchedulingConfig(
        schedule_days=tuple(settings.schedule_days),
        day_start_time=settings.day_start_time,
        day_end_time=settings.day_end_time,
        slot_minutes=settings.slot_minutes,
        strand_days=tuple(settings.strand_days),
        strand_max_days=settings.strand_max_days,
    )


def build_orchestrator(
    *,
    rooms: Sequence[Room],
    fixed_schedules: Sequence[FixedSchedule],
    departments: Sequence[Department] = (),
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> SchedulingRunOrchestrator:
    """Assemble the placement core over one read-only catalog snapshot.

    One ``rng`` is shared by the resolver, the engine and the orchestrator so a
    fixed seed reproduces the whole run.
    """
    resolved_settings = settings or get_settings()
    config = scheduling_config_from_settings(resolved_settings)
    try:
        validate_scheduling_config(config)
        registry = FixedScheduleRegistry(fixed_schedules)
    except ValueError as exc:
        raise ScheduleValidationError(str(exc)) from exc

    shared_rng = rng or random.Random()
    time_model = TimeModel.from_settings(resolved_settings)
    resolver = RoomCompatibilityResolver(rooms, departments=departments, rng=shared_rng)
    engine = PlacementEngine(
        time_model,
        resolver,
        ConflictDetector(registry),
        rng=shared_rng,
        strand_days=config.strand_days,
        strand_max_days=config.strand_max_days,
    )
    return SchedulingRunOrchestrator(
        engine,
        [room.room_id for room in rooms],
        rng=shared_rng,
        align_subject_times=resolved_settings.align_subject_times,
    )


class TimetableGenerationService:
    """Business logic orchestration for repository-backed scheduling runs."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._lock = threading.RLock()

    def _resolve_seed(self, seed: Optional[int]) -> Optional[int]:
        if seed is not None:
            if seed < 0:
                raise ScheduleValidationError("seed must be >= 0")
            return seed
        return self._settings.random_seed

    def preview(
        self,
        *,
        requests: Sequence[ClassRequest],
        rooms: Sequence[Room],
        fixed_schedules: Sequence[FixedSchedule] = (),
        departments: Sequence[Department] = (),
        seed: Optional[int] = None,
    ) -> SchedulingRunResult:
        """Run over an inline snapshot without touching the repository."""
        resolved_seed = self._resolve_seed(seed)
        orchestrator = build_orchestrator(
            rooms=rooms,
            fixed_schedules=fixed_schedules,
            departments=departments,
            settings=self._settings,
            rng=random.Random(resolved_seed),
        )
        return orchestrator.run(requests)

    def generate_schedule(
        self,
        *,
        seed: Optional[int] = None,
        persist_outputs: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SchedulingRunResult:
        resolved_seed = self._resolve_seed(seed)
        with self._lock:
            snapshot = self._repository.load_snapshot()
            if not snapshot.class_requests:
                raise SchedulingInputError("No class requests to schedule")
            if not snapshot.rooms:
                logger.warning("Scheduling run has no rooms; every request will be unplaceable")

            orchestrator = build_orchestrator(
                rooms=snapshot.rooms,
                fixed_schedules=snapshot.fixed_schedules,
                departments=snapshot.departments,
                settings=self._settings,
                rng=random.Random(resolved_seed),
            )
            result = orchestrator.run(
                snapshot.class_requests,
                progress=progress,
                cancel_event=cancel_event,
            )
            if persist_outputs:
                self._repository.save_run_result(result, seed=resolved_seed)

        logger.info(
            "Timetable generation completed | seed=%s | scheduled=%s | unscheduled=%s | persisted=%s",
            resolved_seed,
            len(result.scheduled),
            len(result.unscheduled),
            persist_outputs,
        )
        return result

    def latest_schedule(self) -> list[ScheduledSession]:
        return self._repository.list_scheduled_sessions()
