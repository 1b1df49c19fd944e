"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from timetabler.domain.models import (
    PROGRAM,
    ClassRequest,
    Department,
    FixedSchedule,
    Room,
    ScheduledSession,
    SchedulingRunResult,
)
from timetabler.utils.config import Settings, get_settings
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class CatalogSnapshot:
    """Read-only inputs for one scheduling run, taken at run start."""

    departments: list[Department]
    rooms: list[Room]
    fixed_schedules: list[FixedSchedule]
    class_requests: list[ClassRequest]


@dataclass(frozen=True)
class RunSummary:
    run_id: int
    seed: Optional[int]
    scheduled_count: int
    unscheduled_count: int
    rejected_count: int
    cancelled: bool
    created_at: str


def _encode_tags(tags: Iterable[str]) -> str:
    return ",".join(sorted(tag.strip().lower() for tag in tags if tag.strip()))


def _decode_tags(value: Optional[str]) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(item for item in value.split(",") if item)


class DataRepository:
    """Encapsulates SQLite access so scheduling logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Departments (
                        id TEXT PRIMARY KEY,
                        code TEXT NOT NULL UNIQUE,
                        name TEXT NOT NULL DEFAULT ''
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        department TEXT,
                        exclusive INTEGER NOT NULL DEFAULT 0 CHECK (exclusive IN (0,1)),
                        priority INTEGER NOT NULL DEFAULT 0 CHECK (priority IN (0,1)),
                        tags TEXT NOT NULL DEFAULT ''
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS FixedSchedules (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        day TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        allow_classes INTEGER NOT NULL DEFAULT 0 CHECK (allow_classes IN (0,1)),
                        CHECK (start_time < end_time)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ClassRequests (
                        id TEXT PRIMARY KEY,
                        subject TEXT NOT NULL,
                        duration_hours REAL NOT NULL,
                        class_type TEXT NOT NULL,
                        department TEXT NOT NULL,
                        instructor TEXT NOT NULL,
                        subject_key TEXT,
                        program_kind TEXT NOT NULL DEFAULT 'program',
                        companion_of TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS SchedulingRuns (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        seed INTEGER,
                        scheduled_count INTEGER NOT NULL,
                        unscheduled_count INTEGER NOT NULL,
                        rejected_count INTEGER NOT NULL,
                        cancelled INTEGER NOT NULL DEFAULT 0,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ScheduledSessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        run_id INTEGER NOT NULL,
                        request_id TEXT NOT NULL,
                        day TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        room_id TEXT NOT NULL,
                        instructor TEXT NOT NULL,
                        subject TEXT NOT NULL DEFAULT '',
                        department TEXT NOT NULL DEFAULT '',
                        class_type TEXT NOT NULL DEFAULT 'lecture',
                        FOREIGN KEY (run_id) REFERENCES SchedulingRuns(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS UnscheduledRequests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        run_id INTEGER NOT NULL,
                        request_id TEXT NOT NULL,
                        reason TEXT NOT NULL DEFAULT '',
                        FOREIGN KEY (run_id) REFERENCES SchedulingRuns(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_sessions_run_day
                    ON ScheduledSessions(run_id, day, start_time);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_catalog(self) -> int:
        """Seed a small demo catalog only when no rooms exist; return rooms added."""
        departments = [
            Department("dept-bsit", "BSIT", "Information Technology"),
            Department("dept-bshm", "BSHM", "Hospitality Management"),
            Department("dept-bsba", "BSBA", "Business Administration"),
        ]
        rooms = [
            Room("CL1", "Computer Lab 1", "BSIT", priority=True, tags=frozenset({"lab"})),
            Room("CL2", "Computer Lab 2", "BSIT", tags=frozenset({"lab"})),
            Room("KITCHEN", "Kitchen", "BSHM", exclusive=True, priority=True,
                 tags=frozenset({"kitchen"})),
            Room("DINING", "Dining Hall", "BSHM", priority=True, tags=frozenset({"dining"})),
            Room("R101", "Room 101"),
            Room("R102", "Room 102"),
            Room("R201", "Room 201", "BSBA"),
        ]
        fixed_schedules = [
            FixedSchedule("fixed-flag", "Flag Ceremony", "Monday", "07:00", "08:00"),
            FixedSchedule("fixed-assembly", "General Assembly", "Friday", "15:00", "17:00"),
            FixedSchedule("fixed-club", "Club Hour", "Wednesday", "16:00", "17:00", True),
        ]
        requests = [
            ClassRequest("IT101-lec", "Programming 1", 2, "lecture", "BSIT", "J. Dela Cruz",
                         subject_key="IT101"),
            ClassRequest("IT101-lab", "Programming 1", 3, "laboratory", "BSIT", "J. Dela Cruz",
                         subject_key="IT101", companion_of="IT101-lec"),
            ClassRequest("HM101", "Culinary Arts", 3, "laboratory", "BSHM", "M. Santos"),
            ClassRequest("BA101", "Principles of Management", 1.5, "lecture", "BSBA", "R. Reyes"),
        ]
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Catalog already present; skipping demo seed")
                    return 0
            for department in departments:
                self.create_department(department)
            for room in rooms:
                self.create_room(room)
            for schedule in fixed_schedules:
                self.create_fixed_schedule(schedule)
            for request in requests:
                self.create_class_request(request)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo catalog seeding failed: {exc}") from exc
        logger.info(
            "Demo catalog seeded | rooms=%s | fixed_schedules=%s | requests=%s",
            len(rooms),
            len(fixed_schedules),
            len(requests),
        )
        return len(rooms)

    def create_department(self, department: Department) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO Departments (id, code, name) VALUES (?, ?, ?);",
                (department.department_id, department.code, department.name),
            )
            conn.commit()

    def create_room(self, room: Room) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Rooms (id, name, department, exclusive, priority, tags)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    room.room_id,
                    room.name,
                    room.department,
                    int(room.exclusive),
                    int(room.priority),
                    _encode_tags(room.tags),
                ),
            )
            conn.commit()

    def create_fixed_schedule(self, schedule: FixedSchedule) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO FixedSchedules (id, name, day, start_time, end_time, allow_classes)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    schedule.schedule_id,
                    schedule.name,
                    schedule.day,
                    schedule.start_time,
                    schedule.end_time,
                    int(schedule.allow_classes),
                ),
            )
            conn.commit()

    def create_class_request(self, request: ClassRequest) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO ClassRequests (
                    id,
                    subject,
                    duration_hours,
                    class_type,
                    department,
                    instructor,
                    subject_key,
                    program_kind,
                    companion_of
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    request.request_id,
                    request.subject,
                    float(request.duration_hours),
                    request.class_type,
                    request.department,
                    request.instructor,
                    request.subject_key,
                    request.program_kind,
                    request.companion_of,
                ),
            )
            conn.commit()

    def list_departments(self) -> list[Department]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, code, name FROM Departments ORDER BY code ASC;")
            return [
                Department(
                    department_id=str(row["id"]),
                    code=str(row["code"]),
                    name=str(row["name"]),
                )
                for row in rows.fetchall()
            ]

    def list_rooms(self) -> list[Room]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, name, department, exclusive, priority, tags
                FROM Rooms
                ORDER BY id ASC;
                """
            )
            return [
                Room(
                    room_id=str(row["id"]),
                    name=str(row["name"]),
                    department=row["department"],
                    exclusive=bool(row["exclusive"]),
                    priority=bool(row["priority"]),
                    tags=_decode_tags(row["tags"]),
                )
                for row in rows.fetchall()
            ]

    def list_fixed_schedules(self) -> list[FixedSchedule]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, name, day, start_time, end_time, allow_classes
                FROM FixedSchedules
                ORDER BY day ASC, start_time ASC;
                """
            )
            return [
                FixedSchedule(
                    schedule_id=str(row["id"]),
                    name=str(row["name"]),
                    day=str(row["day"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                    allow_classes=bool(row["allow_classes"]),
                )
                for row in rows.fetchall()
            ]

    def list_class_requests(self) -> list[ClassRequest]:
        """Return requests in submission order, as the UI listed them."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT
                    id,
                    subject,
                    duration_hours,
                    class_type,
                    department,
                    instructor,
                    subject_key,
                    program_kind,
                    companion_of
                FROM ClassRequests
                ORDER BY created_at ASC, rowid ASC;
                """
            )
            return [
                ClassRequest(
                    request_id=str(row["id"]),
                    subject=str(row["subject"]),
                    duration_hours=float(row["duration_hours"]),
                    class_type=str(row["class_type"]),
                    department=str(row["department"]),
                    instructor=str(row["instructor"]),
                    subject_key=row["subject_key"],
                    program_kind=str(row["program_kind"] or PROGRAM),
                    companion_of=row["companion_of"],
                )
                for row in rows.fetchall()
            ]

    def load_snapshot(self) -> CatalogSnapshot:
        return CatalogSnapshot(
            departments=self.list_departments(),
            rooms=self.list_rooms(),
            fixed_schedules=self.list_fixed_schedules(),
            class_requests=self.list_class_requests(),
        )

    def save_run_result(self, result: SchedulingRunResult, seed: Optional[int]) -> int:
        """Persist a run as the current timetable and return its run id.

        Sessions of earlier runs are kept for audit; ``list_scheduled_sessions``
        reads the latest run only.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO SchedulingRuns (
                    seed,
                    scheduled_count,
                    unscheduled_count,
                    rejected_count,
                    cancelled
                )
                VALUES (?, ?, ?, ?, ?);
                """,
                (
                    seed,
                    len(result.scheduled),
                    len(result.unscheduled),
                    len(result.rejected),
                    int(result.cancelled),
                ),
            )
            run_id = int(cursor.lastrowid)
            cursor.executemany(
                """
                INSERT INTO ScheduledSessions (
                    run_id,
                    request_id,
                    day,
                    start_time,
                    end_time,
                    room_id,
                    instructor,
                    subject,
                    department,
                    class_type
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        run_id,
                        session.request_id,
                        session.day,
                        session.start_time,
                        session.end_time,
                        session.room_id,
                        session.instructor,
                        session.subject,
                        session.department,
                        session.class_type,
                    )
                    for session in result.scheduled
                ],
            )
            cursor.executemany(
                """
                INSERT INTO UnscheduledRequests (run_id, request_id, reason)
                VALUES (?, ?, ?);
                """,
                [
                    (
                        run_id,
                        request.request_id,
                        result.failure_reasons.get(request.request_id, ""),
                    )
                    for request in result.unscheduled
                ],
            )
            conn.commit()
        logger.info(
            "Scheduling run persisted | run_id=%s | sessions=%s",
            run_id,
            len(result.scheduled),
        )
        return run_id

    def latest_run(self) -> Optional[RunSummary]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, seed, scheduled_count, unscheduled_count, rejected_count,
                       cancelled, created_at
                FROM SchedulingRuns
                ORDER BY id DESC
                LIMIT 1;
                """
            ).fetchone()
            if row is None:
                return None
            return RunSummary(
                run_id=int(row["id"]),
                seed=row["seed"],
                scheduled_count=int(row["scheduled_count"]),
                unscheduled_count=int(row["unscheduled_count"]),
                rejected_count=int(row["rejected_count"]),
                cancelled=bool(row["cancelled"]),
                created_at=str(row["created_at"]),
            )

    def list_scheduled_sessions(self, run_id: Optional[int] = None) -> list[ScheduledSession]:
        if run_id is None:
            latest = self.latest_run()
            if latest is None:
                return []
            run_id = latest.run_id
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT request_id, day, start_time, end_time, room_id, instructor,
                       subject, department, class_type
                FROM ScheduledSessions
                WHERE run_id = ?
                ORDER BY id ASC;
                """,
                (run_id,),
            )
            return [
                ScheduledSession(
                    request_id=str(row["request_id"]),
                    day=str(row["day"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                    room_id=str(row["room_id"]),
                    instructor=str(row["instructor"]),
                    subject=str(row["subject"]),
                    department=str(row["department"]),
                    class_type=str(row["class_type"]),
                )
                for row in rows.fetchall()
            ]

    def list_unscheduled_reasons(self, run_id: int) -> dict[str, str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT request_id, reason FROM UnscheduledRequests WHERE run_id = ?;",
                (run_id,),
            )
            return {str(row["request_id"]): str(row["reason"]) for row in rows.fetchall()}

    def count_runs(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM SchedulingRuns;").fetchone()
            return int(row["count"])

    def count_sessions(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM ScheduledSessions;").fetchone()
            return int(row["count"])
