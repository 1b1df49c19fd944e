from __future__ import annotations

from dataclasses import replace

import pytest

from timetabler.domain.models import ClassRequest, Room
from timetabler.repository.data_repository import DataRepository
from timetabler.services.orchestrator import SchedulingInputError
from timetabler.services.timetable_service import (
    ScheduleValidationError,
    TimetableGenerationService,
)
from timetabler.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str, **overrides):
    return replace(get_settings(), database_path=tmp_path / filename, **overrides)


def _seeded_service(tmp_path, filename: str, **overrides):
    settings = _build_test_settings(tmp_path, filename, **overrides)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_catalog()
    return TimetableGenerationService(repository=repository, settings=settings), repository


def test_generate_schedule_persists_latest_run(tmp_path):
    service, repository = _seeded_service(tmp_path, "persist.db")

    result = service.generate_schedule(seed=11)

    assert result.total_valid == 4
    assert repository.count_runs() == 1
    assert repository.list_scheduled_sessions() == result.scheduled
    assert service.latest_schedule() == result.scheduled
    latest = repository.latest_run()
    assert latest.seed == 11
    assert latest.scheduled_count == len(result.scheduled)


def test_generate_schedule_without_persist_leaves_repository_untouched(tmp_path):
    service, repository = _seeded_service(tmp_path, "no_persist.db")

    service.generate_schedule(seed=3, persist_outputs=False)

    assert repository.count_runs() == 0
    assert repository.count_sessions() == 0
    assert service.latest_schedule() == []


def test_same_seed_gives_same_persisted_timetable(tmp_path):
    service, repository = _seeded_service(tmp_path, "deterministic.db")

    first = service.generate_schedule(seed=5)
    second = service.generate_schedule(seed=5)

    assert first.scheduled == second.scheduled
    assert repository.count_runs() == 2
    assert repository.list_scheduled_sessions() == second.scheduled


def test_settings_seed_is_used_when_none_given(tmp_path):
    service, repository = _seeded_service(tmp_path, "settings_seed.db", random_seed=21)

    first = service.generate_schedule()
    second = service.generate_schedule(seed=21, persist_outputs=False)

    assert first.scheduled == second.scheduled
    assert repository.latest_run().seed == 21


def test_demo_catalog_keeps_kitchen_for_hospitality(tmp_path):
    service, _ = _seeded_service(tmp_path, "kitchen.db")

    for seed in range(5):
        result = service.generate_schedule(seed=seed, persist_outputs=False)
        for session in result.scheduled:
            if session.room_id == "KITCHEN":
                assert session.department == "BSHM"


def test_demo_seed_is_idempotent(tmp_path):
    _, repository = _seeded_service(tmp_path, "idempotent.db")

    assert repository.seed_demo_catalog() == 0
    assert len(repository.list_rooms()) == 7
    assert len(repository.list_class_requests()) == 4


def test_empty_catalog_raises_input_error(tmp_path):
    settings = _build_test_settings(tmp_path, "empty.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    service = TimetableGenerationService(repository=repository, settings=settings)

    with pytest.raises(SchedulingInputError):
        service.generate_schedule(seed=1)


def test_unplaceable_requests_are_persisted_with_reasons(tmp_path):
    settings = _build_test_settings(tmp_path, "no_rooms.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_class_request(
        ClassRequest("IT101", "Programming 1", 2, "lecture", "BSIT", "J. Dela Cruz")
    )
    service = TimetableGenerationService(repository=repository, settings=settings)

    result = service.generate_schedule(seed=1)

    assert result.scheduled == []
    run_id = repository.latest_run().run_id
    reasons = repository.list_unscheduled_reasons(run_id)
    assert "no compatible room" in reasons["IT101"]


def test_negative_seed_is_rejected(tmp_path):
    service, _ = _seeded_service(tmp_path, "negative.db")

    with pytest.raises(ScheduleValidationError):
        service.generate_schedule(seed=-1)


def test_invalid_window_settings_surface_as_validation_error(tmp_path):
    service, _ = _seeded_service(
        tmp_path, "bad_window.db", day_start_time="20:00", day_end_time="07:00"
    )

    with pytest.raises(ScheduleValidationError):
        service.generate_schedule(seed=1, persist_outputs=False)


def test_preview_never_persists(tmp_path):
    service, repository = _seeded_service(tmp_path, "preview.db")

    result = service.preview(
        requests=[ClassRequest("X1", "Statistics", 1.5, "lecture", "BSBA", "R. Reyes")],
        rooms=[Room("R1", "Room 1")],
        seed=4,
    )

    assert [session.request_id for session in result.scheduled] == ["X1"]
    assert repository.count_runs() == 0


def test_repository_round_trips_room_flags_and_tags(tmp_path):
    settings = _build_test_settings(tmp_path, "rooms.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    room = Room("CL9", "Computer Lab 9", "BSIT", exclusive=True, priority=True,
                tags=frozenset({"lab", "computer-lab"}))

    repository.create_room(room)

    assert repository.list_rooms() == [room]
