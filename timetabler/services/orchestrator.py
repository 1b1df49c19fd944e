"""Scheduling run orchestration over a batch of class requests.

Placement is strictly sequential: every request observes the sessions and
room usage committed by the requests before it. Progress callbacks and the
cancellation check run only between requests, never mid-placement.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from timetabler.domain.constraints import class_request_problems
from timetabler.domain.models import (
    LABORATORY,
    LECTURE,
    PROGRAM,
    ClassRequest,
    PlacementHint,
    RejectedRequest,
    ScheduledSession,
    SchedulingRunResult,
)
from timetabler.domain.time_model import to_minutes_since_midnight
from timetabler.services.placement_engine import PlacementEngine
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class SchedulingInputError(Exception):
    """Raised when a run is requested with nothing to schedule."""


@dataclass(frozen=True)
class ClassOffering:
    """A subject offering that may carry both lecture and laboratory hours."""

    offering_id: str
    subject: str
    department: str
    instructor: str
    lecture_hours: float = 0.0
    lab_hours: float = 0.0
    subject_key: Optional[str] = None
    program_kind: str = PROGRAM


def expand_offering(offering: ClassOffering) -> list[ClassRequest]:
    """Split an offering into one request per class type.

    An offering with both kinds of hours yields ``<id>-lec`` and ``<id>-lab``;
    the laboratory is linked to the lecture through ``companion_of``.
    """
    common = {
        "subject": offering.subject,
        "department": offering.department,
        "instructor": offering.instructor,
        "subject_key": offering.subject_key,
        "program_kind": offering.program_kind,
    }
    if offering.lecture_hours > 0 and offering.lab_hours > 0:
        lecture_id = f"{offering.offering_id}-lec"
        return [
            ClassRequest(
                request_id=lecture_id,
                duration_hours=offering.lecture_hours,
                class_type=LECTURE,
                **common,
            ),
            ClassRequest(
                request_id=f"{offering.offering_id}-lab",
                duration_hours=offering.lab_hours,
                class_type=LABORATORY,
                companion_of=lecture_id,
                **common,
            ),
        ]
    if offering.lab_hours > 0:
        return [
            ClassRequest(
                request_id=offering.offering_id,
                duration_hours=offering.lab_hours,
                class_type=LABORATORY,
                **common,
            )
        ]
    return [
        ClassRequest(
            request_id=offering.offering_id,
            duration_hours=offering.lecture_hours,
            class_type=LECTURE,
            **common,
        )
    ]


def expand_offerings(offerings: Iterable[ClassOffering]) -> list[ClassRequest]:
    requests: list[ClassRequest] = []
    for offering in offerings:
        requests.extend(expand_offering(offering))
    return requests


def partition_requests(
    requests: Sequence[ClassRequest],
) -> tuple[list[ClassRequest], list[RejectedRequest]]:
    """Split intake into placeable requests and rejected ones with reasons."""
    valid: list[ClassRequest] = []
    rejected: list[RejectedRequest] = []
    seen_ids: set[str] = set()
    for request in requests:
        problems = class_request_problems(request)
        if request.request_id in seen_ids:
            problems.append(f"duplicate request_id {request.request_id!r}")
        if problems:
            rejected.append(RejectedRequest(request=request, reasons=tuple(problems)))
            logger.warning(
                "Class request rejected at intake | request_id=%s | reasons=%s",
                request.request_id,
                "; ".join(problems),
            )
            continue
        seen_ids.add(request.request_id)
        valid.append(request)
    return valid, rejected


class SchedulingRunOrchestrator:
    """Drives the placement engine across a whole batch."""

    def __init__(
        self,
        engine: PlacementEngine,
        room_ids: Iterable[str],
        *,
        rng: Optional[random.Random] = None,
        align_subject_times: bool = True,
    ) -> None:
        self._engine = engine
        self._room_ids = tuple(room_ids)
        self._rng = rng or random.Random()
        self._align_subject_times = align_subject_times

    def _shuffled_groups(self, requests: list[ClassRequest]) -> list[list[ClassRequest]]:
        """Shuffle processing order, keeping each laboratory right after its lecture."""
        by_id = {request.request_id: request for request in requests}
        companions: dict[str, list[ClassRequest]] = {}
        for request in requests:
            if request.companion_of and request.companion_of in by_id:
                companions.setdefault(request.companion_of, []).append(request)

        groups: list[list[ClassRequest]] = []
        for request in requests:
            if request.companion_of and request.companion_of in by_id:
                continue
            groups.append([request, *companions.get(request.request_id, [])])
        self._rng.shuffle(groups)
        return groups

    def _hint_for(
        self,
        request: ClassRequest,
        placed_by_id: dict[str, ScheduledSession],
        subject_anchor: dict[str, ScheduledSession],
    ) -> Optional[PlacementHint]:
        if request.companion_of and request.companion_of in placed_by_id:
            lecture = placed_by_id[request.companion_of]
            return PlacementHint(
                preferred_start=to_minutes_since_midnight(lecture.start_time),
                excluded_days=frozenset({lecture.day}),
            )
        if not self._align_subject_times:
            return None
        anchor = subject_anchor.get(request.grouping_key)
        if anchor is None:
            return None
        return PlacementHint(
            preferred_day=anchor.day,
            preferred_start=to_minutes_since_midnight(anchor.start_time),
        )

    def run(
        self,
        requests: Sequence[ClassRequest],
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SchedulingRunResult:
        if not requests:
            raise SchedulingInputError("No class requests to schedule")

        valid, rejected = partition_requests(list(requests))
        groups = self._shuffled_groups(valid)
        ordered = [request for group in groups for request in group]
        total = len(ordered)

        already_placed: list[ScheduledSession] = []
        room_usage: dict[str, int] = {room_id: 0 for room_id in self._room_ids}
        placed_by_id: dict[str, ScheduledSession] = {}
        subject_anchor: dict[str, ScheduledSession] = {}
        unscheduled: list[ClassRequest] = []
        failure_reasons: dict[str, str] = {}
        cancelled = False

        for index, request in enumerate(ordered):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                for remaining in ordered[index:]:
                    unscheduled.append(remaining)
                    failure_reasons[remaining.request_id] = "run cancelled before attempt"
                logger.info(
                    "Scheduling run cancelled | processed=%s | remaining=%s",
                    index,
                    total - index,
                )
                break

            if request.companion_of and request.companion_of in failure_reasons:
                unscheduled.append(request)
                failure_reasons[request.request_id] = (
                    f"lecture {request.companion_of} could not be placed"
                )
            else:
                outcome = self._engine.attempt(
                    request,
                    already_placed,
                    room_usage,
                    self._hint_for(request, placed_by_id, subject_anchor),
                )
                if outcome.session is not None:
                    already_placed.append(outcome.session)
                    placed_by_id[request.request_id] = outcome.session
                    subject_anchor.setdefault(request.grouping_key, outcome.session)
                else:
                    unscheduled.append(request)
                    failure_reasons[request.request_id] = outcome.reason
                    logger.info(
                        "Class could not be placed | request_id=%s | subject=%s | tried=%s | reason=%s",
                        request.request_id,
                        request.subject,
                        outcome.combinations_tried,
                        outcome.reason,
                    )

            if progress is not None:
                progress(index + 1, total, request.label)

        logger.info(
            "Scheduling run completed | scheduled=%s | unscheduled=%s | rejected=%s | cancelled=%s",
            len(already_placed),
            len(unscheduled),
            len(rejected),
            cancelled,
        )
        return SchedulingRunResult(
            scheduled=already_placed,
            unscheduled=unscheduled,
            rejected=rejected,
            cancelled=cancelled,
            room_usage=dict(room_usage),
            failure_reasons=failure_reasons,
        )
