from __future__ import annotations

import random
import threading

import pytest

from timetabler.domain.models import (
    ClassRequest,
    Department,
    FixedSchedule,
    Room,
)
from timetabler.domain.time_model import intervals_overlap, to_minutes_since_midnight
from timetabler.services.orchestrator import (
    ClassOffering,
    SchedulingInputError,
    expand_offering,
    expand_offerings,
)
from timetabler.services.room_resolver import DepartmentMatcher
from timetabler.services.timetable_service import build_orchestrator
from timetabler.utils.config import Settings


DEPARTMENTS = [
    Department("dept-bsit", "BSIT", "Information Technology"),
    Department("dept-bshm", "BSHM", "Hospitality Management"),
    Department("dept-bsba", "BSBA", "Business Administration"),
]


def _run(requests, rooms, *, fixed=(), seed=7, progress=None, cancel_event=None, **settings_overrides):
    settings = Settings(**settings_overrides)
    orchestrator = build_orchestrator(
        rooms=rooms,
        fixed_schedules=fixed,
        departments=DEPARTMENTS,
        settings=settings,
        rng=random.Random(seed),
    )
    return orchestrator.run(requests, progress=progress, cancel_event=cancel_event)


def _request(request_id: str, duration: float = 2, **overrides) -> ClassRequest:
    defaults = {
        "request_id": request_id,
        "subject": f"Subject {request_id}",
        "duration_hours": duration,
        "class_type": "lecture",
        "department": "BSIT",
        "instructor": f"Instructor {request_id}",
    }
    defaults.update(overrides)
    return ClassRequest(**defaults)


def _bounds(session) -> tuple[int, int]:
    return (
        to_minutes_since_midnight(session.start_time),
        to_minutes_since_midnight(session.end_time),
    )


def _assert_no_double_booking(sessions) -> None:
    for index, left in enumerate(sessions):
        for right in sessions[index + 1:]:
            if left.day != right.day:
                continue
            if not intervals_overlap(*_bounds(left), *_bounds(right)):
                continue
            assert left.room_id != right.room_id, (left, right)
            assert left.instructor != right.instructor, (left, right)


def _busy_catalog(count: int = 30):
    rooms = [
        Room("CL1", "Computer Lab 1", "BSIT", priority=True, tags=frozenset({"lab"})),
        Room("KITCHEN", "Kitchen", "BSHM", exclusive=True),
        Room("R101", "Room 101"),
        Room("R102", "Room 102"),
        Room("R201", "Room 201", "dept-bsba", exclusive=True),
    ]
    fixed = [
        FixedSchedule("fs-1", "Flag Ceremony", "Monday", "07:00", "09:00"),
        FixedSchedule("fs-2", "General Assembly", "Friday", "13:00", "17:00"),
        FixedSchedule("fs-3", "Club Hour", "Wednesday", "10:00", "12:00", allow_classes=True),
    ]
    departments = ["BSIT", "BSHM", "BSBA"]
    durations = [1, 1.5, 2, 3]
    requests = [
        _request(
            f"C{index:02d}",
            durations[index % len(durations)],
            department=departments[index % len(departments)],
            instructor=f"Instructor {index % 7}",
            class_type="laboratory" if index % 5 == 0 else "lecture",
        )
        for index in range(count)
    ]
    return requests, rooms, fixed


# --- Core properties ---

def test_every_valid_request_is_scheduled_or_unscheduled_exactly_once() -> None:
    requests, rooms, fixed = _busy_catalog()

    result = _run(requests, rooms, fixed=fixed)

    seen = [session.request_id for session in result.scheduled]
    seen += [request.request_id for request in result.unscheduled]
    assert sorted(seen) == sorted(request.request_id for request in requests)
    assert len(set(seen)) == len(seen)


def test_no_room_or_instructor_is_double_booked() -> None:
    requests, rooms, fixed = _busy_catalog(60)

    result = _run(requests, rooms, fixed=fixed)

    _assert_no_double_booking(result.scheduled)


def test_sessions_respect_window_and_blocking_fixed_schedules() -> None:
    requests, rooms, fixed = _busy_catalog()

    result = _run(requests, rooms, fixed=fixed)

    for session in result.scheduled:
        start, end = _bounds(session)
        assert 420 <= start and end <= 1200
        if session.day == "Monday":
            assert not intervals_overlap(start, end, 420, 540)
        if session.day == "Friday":
            assert not intervals_overlap(start, end, 780, 1020)


def test_exclusive_rooms_only_host_their_department() -> None:
    requests, rooms, fixed = _busy_catalog()
    matcher = DepartmentMatcher(DEPARTMENTS)
    room_by_id = {room.room_id: room for room in rooms}

    result = _run(requests, rooms, fixed=fixed)

    for session in result.scheduled:
        room = room_by_id[session.room_id]
        if room.exclusive:
            assert matcher.same(room.department, session.department)


def test_same_seed_reproduces_the_same_timetable() -> None:
    requests, rooms, fixed = _busy_catalog()

    first = _run(requests, rooms, fixed=fixed, seed=99)
    second = _run(requests, rooms, fixed=fixed, seed=99)

    assert first.scheduled == second.scheduled
    assert first.unscheduled == second.unscheduled


def test_scheduled_subset_can_be_scheduled_again() -> None:
    requests = [_request(f"C{index}", 2) for index in range(8)]
    requests.append(_request("TOO-LONG", 14))
    rooms = [Room("R101", "Room 101"), Room("R102", "Room 102")]
    first = _run(requests, rooms)
    placed_ids = {session.request_id for session in first.scheduled}
    assert placed_ids

    subset = [request for request in requests if request.request_id in placed_ids]
    second = _run(subset, rooms, seed=1)

    assert second.unscheduled == []
    assert {session.request_id for session in second.scheduled} == placed_ids


def test_room_usage_counts_every_room_and_matches_sessions() -> None:
    requests, rooms, fixed = _busy_catalog()

    result = _run(requests, rooms, fixed=fixed)

    assert set(result.room_usage) == {room.room_id for room in rooms}
    assert sum(result.room_usage.values()) == len(result.scheduled)


# --- Scenarios ---

def test_single_request_single_room() -> None:
    result = _run(
        [_request("A", 2, department="BSIT", instructor="J. Dela Cruz")],
        [Room("R1", "Room 1")],
    )

    assert len(result.scheduled) == 1
    session = result.scheduled[0]
    assert session.room_id == "R1"
    assert session.instructor == "J. Dela Cruz"
    assert result.unscheduled == []
    start, end = _bounds(session)
    assert end - start == 120
    assert 420 <= start and end <= 1200


def test_shared_instructor_sessions_do_not_overlap() -> None:
    result = _run(
        [
            _request("A", 1, instructor="I1"),
            _request("B", 1, instructor="I1"),
        ],
        [Room("R1", "Room 1"), Room("R2", "Room 2")],
        schedule_days=("Monday", "Tuesday"),
        strand_days=("Monday", "Tuesday"),
        day_start_time="07:00",
        day_end_time="08:00",
        slot_minutes=30,
    )

    assert len(result.scheduled) == 2
    first, second = result.scheduled
    assert first.start_time == second.start_time == "07:00"
    assert first.day != second.day
    _assert_no_double_booking(result.scheduled)


def test_fixed_block_forces_class_after_block() -> None:
    result = _run(
        [_request("A", 3)],
        [Room("R1", "Room 1")],
        fixed=[FixedSchedule("fs-1", "Morning Block", "Monday", "07:00", "12:00")],
        schedule_days=("Monday",),
        strand_days=("Monday",),
        day_start_time="07:00",
        day_end_time="15:00",
    )

    assert len(result.scheduled) == 1
    assert result.scheduled[0].start_time == "12:00"
    assert result.scheduled[0].end_time == "15:00"


def test_fully_blocked_window_leaves_request_unscheduled_with_reason() -> None:
    result = _run(
        [_request("A", 3)],
        [Room("R1", "Room 1")],
        fixed=[FixedSchedule("fs-1", "Morning Block", "Monday", "07:00", "12:00")],
        schedule_days=("Monday",),
        strand_days=("Monday",),
        day_start_time="07:00",
        day_end_time="12:00",
    )

    assert result.scheduled == []
    assert [request.request_id for request in result.unscheduled] == ["A"]
    assert "fixed_schedule" in result.failure_reasons["A"]


def test_exclusive_room_is_never_used_by_another_department() -> None:
    result = _run(
        [_request("A", 2, department="BSIT")],
        [Room("KITCHEN", "Kitchen", "BSHM", exclusive=True)],
    )

    assert result.scheduled == []
    assert "no compatible room" in result.failure_reasons["A"]


def test_overloaded_single_room_leaves_excess_unscheduled() -> None:
    requests = [_request(f"C{index}", 3) for index in range(10)]

    result = _run(
        requests,
        [Room("R1", "Room 1")],
        schedule_days=("Monday",),
        strand_days=("Monday",),
    )

    assert 1 <= len(result.scheduled) <= 4
    assert len(result.scheduled) + len(result.unscheduled) == 10
    _assert_no_double_booking(result.scheduled)


# --- Intake, progress and cancellation ---

def test_empty_input_raises() -> None:
    with pytest.raises(SchedulingInputError):
        _run([], [Room("R1", "Room 1")])


def test_malformed_requests_are_rejected_not_scheduled() -> None:
    requests = [
        _request("GOOD", 2),
        _request("ZERO", 0),
        _request("NOBODY", 2, instructor=""),
        _request("GOOD", 1),
    ]

    result = _run(requests, [Room("R1", "Room 1")])

    rejected = {item.request.request_id: item.reasons for item in result.rejected}
    assert set(rejected) == {"ZERO", "NOBODY", "GOOD"}
    assert any("duplicate" in reason for reason in rejected["GOOD"])
    assert [session.request_id for session in result.scheduled] == ["GOOD"]
    assert result.total_valid == 1


def test_sub_minute_request_is_rejected_instead_of_placed() -> None:
    result = _run([_request("BLIP", 0.004)], [Room("R1", "Room 1")])

    assert result.scheduled == []
    assert [item.request.request_id for item in result.rejected] == ["BLIP"]


def test_all_malformed_requests_produce_empty_timetable() -> None:
    result = _run([_request("ZERO", 0)], [Room("R1", "Room 1")])

    assert result.scheduled == []
    assert result.unscheduled == []
    assert len(result.rejected) == 1


def test_progress_reports_each_request_in_order() -> None:
    requests = [_request(f"C{index}", 1) for index in range(5)]
    calls: list[tuple[int, int, str]] = []

    _run(requests, [Room("R1", "Room 1")], progress=lambda *args: calls.append(args))

    assert [call[0] for call in calls] == [1, 2, 3, 4, 5]
    assert all(call[1] == 5 for call in calls)
    assert all("hrs" in call[2] for call in calls)


def test_cancellation_between_requests_keeps_partial_result() -> None:
    requests = [_request(f"C{index}", 1) for index in range(5)]
    cancel_event = threading.Event()

    result = _run(
        requests,
        [Room("R1", "Room 1")],
        progress=lambda *_: cancel_event.set(),
        cancel_event=cancel_event,
    )

    assert result.cancelled
    assert len(result.scheduled) == 1
    assert len(result.unscheduled) == 4
    assert all(
        result.failure_reasons[request.request_id] == "run cancelled before attempt"
        for request in result.unscheduled
    )


def test_cancelled_before_start_attempts_nothing() -> None:
    cancel_event = threading.Event()
    cancel_event.set()

    result = _run([_request("A", 1)], [Room("R1", "Room 1")], cancel_event=cancel_event)

    assert result.cancelled
    assert result.scheduled == []
    assert result.room_usage == {"R1": 0}


# --- Lecture/laboratory pairs and subject alignment ---

def test_offering_with_both_hours_splits_into_linked_pair() -> None:
    lecture, lab = expand_offering(
        ClassOffering("IT101", "Programming 1", "BSIT", "I1", lecture_hours=2, lab_hours=3)
    )

    assert (lecture.request_id, lecture.class_type) == ("IT101-lec", "lecture")
    assert (lab.request_id, lab.class_type) == ("IT101-lab", "laboratory")
    assert lab.companion_of == "IT101-lec"
    assert lab.duration_hours == 3


def test_single_kind_offerings_keep_their_id() -> None:
    requests = expand_offerings(
        [
            ClassOffering("HM101", "Culinary Arts", "BSHM", "I2", lab_hours=3),
            ClassOffering("BA101", "Management", "BSBA", "I3", lecture_hours=1.5),
        ]
    )

    assert [(item.request_id, item.class_type) for item in requests] == [
        ("HM101", "laboratory"),
        ("BA101", "lecture"),
    ]


def test_laboratory_lands_on_another_day_at_lecture_time() -> None:
    requests = expand_offering(
        ClassOffering("IT101", "Programming 1", "BSIT", "I1", lecture_hours=2, lab_hours=2)
    )

    for seed in range(5):
        result = _run(requests, [Room("R1", "Room 1"), Room("CL1", "Computer Lab 1")], seed=seed)
        sessions = {session.request_id: session for session in result.scheduled}
        lecture, lab = sessions["IT101-lec"], sessions["IT101-lab"]
        assert lab.day != lecture.day
        assert lab.start_time == lecture.start_time


def test_laboratory_is_unscheduled_when_its_lecture_fails() -> None:
    requests = expand_offering(
        ClassOffering("IT101", "Programming 1", "BSIT", "I1", lecture_hours=14, lab_hours=2)
    )

    result = _run(requests, [Room("R1", "Room 1")])

    assert result.scheduled == []
    assert result.failure_reasons["IT101-lab"] == "lecture IT101-lec could not be placed"


def test_sections_of_one_subject_share_day_and_start() -> None:
    requests = [
        _request("SEC-A", 2, subject_key="IT101", instructor="I1"),
        _request("SEC-B", 2, subject_key="IT101", instructor="I2"),
    ]

    result = _run(requests, [Room("R1", "Room 1"), Room("R2", "Room 2")])

    first, second = result.scheduled
    assert (first.day, first.start_time) == (second.day, second.start_time)
    assert first.room_id != second.room_id


def test_strand_requests_avoid_saturday() -> None:
    requests = [_request(f"S{index}", 1, program_kind="strand") for index in range(10)]

    result = _run(requests, [Room("R1", "Room 1"), Room("R2", "Room 2")])

    assert len(result.scheduled) == 10
    assert all(session.day != "Saturday" for session in result.scheduled)
