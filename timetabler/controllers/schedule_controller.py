"""HTTP controller layer for timetable generation."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator, model_validator

from timetabler.controllers.dependencies import get_timetable_service
from timetabler.domain.models import (
    ClassRequest,
    Department,
    FixedSchedule,
    Room,
    ScheduledSession,
    SchedulingRunResult,
)
from timetabler.domain.time_model import to_minutes_since_midnight
from timetabler.services.orchestrator import SchedulingInputError
from timetabler.services.timetable_service import (
    ScheduleValidationError,
    TimetableGenerationService,
)
from timetabler.utils.config import get_settings
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["schedule"])

TIME_PATTERN = r"^\d{2}:\d{2}$"


class ClassRequestPayload(BaseModel):
    """Intake DTO; semantic checks happen in the orchestrator so bad rows are reported, not dropped."""

    id: str = Field(min_length=1)
    subject: str
    department: str
    instructor: str
    class_type: str = "lecture"
    duration_hours: float
    subject_key: Optional[str] = None
    program_kind: str = "program"
    companion_of: Optional[str] = None

    def to_domain(self) -> ClassRequest:
        return ClassRequest(
            request_id=self.id,
            subject=self.subject,
            duration_hours=self.duration_hours,
            class_type=self.class_type,
            department=self.department,
            instructor=self.instructor,
            subject_key=self.subject_key,
            program_kind=self.program_kind,
            companion_of=self.companion_of,
        )


class RoomPayload(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    department: Optional[str] = None
    exclusive: bool = False
    priority: bool = False
    tags: list[str] = Field(default_factory=list)

    def to_domain(self) -> Room:
        return Room(
            room_id=self.id,
            name=self.name or self.id,
            department=self.department,
            exclusive=self.exclusive,
            priority=self.priority,
            tags=frozenset(tag.strip().lower() for tag in self.tags if tag.strip()),
        )


class FixedSchedulePayload(BaseModel):
    id: str = Field(min_length=1)
    name: str
    day: str
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    allow_classes: bool = False

    @model_validator(mode="after")
    def validate_interval(self) -> "FixedSchedulePayload":
        if to_minutes_since_midnight(self.start_time) >= to_minutes_since_midnight(self.end_time):
            raise ValueError("fixed schedule start_time must be before end_time")
        return self

    def to_domain(self) -> FixedSchedule:
        return FixedSchedule(
            schedule_id=self.id,
            name=self.name,
            day=self.day,
            start_time=self.start_time,
            end_time=self.end_time,
            allow_classes=self.allow_classes,
        )


class DepartmentPayload(BaseModel):
    id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    name: str = ""

    def to_domain(self) -> Department:
        return Department(department_id=self.id, code=self.code, name=self.name)


class GenerateScheduleRequest(BaseModel):
    seed: Optional[int] = Field(default=None, ge=0)
    persist: bool = True


class PreviewScheduleRequest(BaseModel):
    requests: list[ClassRequestPayload]
    rooms: list[RoomPayload]
    fixed_schedules: list[FixedSchedulePayload] = Field(default_factory=list)
    departments: list[DepartmentPayload] = Field(default_factory=list)
    seed: Optional[int] = Field(default=None, ge=0)

    @field_validator("requests")
    @classmethod
    def validate_requests_present(
        cls,
        value: list[ClassRequestPayload],
    ) -> list[ClassRequestPayload]:
        if not value:
            raise ValueError("requests must contain at least one class request")
        return value


class ScheduledSessionResponse(BaseModel):
    request_id: str
    day: str
    start_time: str
    end_time: str
    room_id: str
    instructor: str
    subject: str
    department: str
    class_type: str


class UnscheduledRequestResponse(BaseModel):
    request_id: str
    subject: str
    department: str
    instructor: str
    class_type: str
    duration_hours: float
    reason: str


class RejectedRequestResponse(BaseModel):
    request_id: str
    reasons: list[str]


class ScheduleRunResponse(BaseModel):
    scheduled: list[ScheduledSessionResponse]
    unscheduled: list[UnscheduledRequestResponse]
    rejected: list[RejectedRequestResponse]
    scheduled_count: int = Field(ge=0)
    unscheduled_count: int = Field(ge=0)
    cancelled: bool
    room_usage: dict[str, int]


class ScheduleListResponse(BaseModel):
    sessions: list[ScheduledSessionResponse]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    app: str
    version: str


def _session_response(session: ScheduledSession) -> ScheduledSessionResponse:
    return ScheduledSessionResponse(
        request_id=session.request_id,
        day=session.day,
        start_time=session.start_time,
        end_time=session.end_time,
        room_id=session.room_id,
        instructor=session.instructor,
        subject=session.subject,
        department=session.department,
        class_type=session.class_type,
    )


def _run_response(result: SchedulingRunResult) -> ScheduleRunResponse:
    return ScheduleRunResponse(
        scheduled=[_session_response(session) for session in result.scheduled],
        unscheduled=[
            UnscheduledRequestResponse(
                request_id=request.request_id,
                subject=request.subject,
                department=request.department,
                instructor=request.instructor,
                class_type=request.class_type,
                duration_hours=request.duration_hours,
                reason=result.failure_reasons.get(request.request_id, ""),
            )
            for request in result.unscheduled
        ],
        rejected=[
            RejectedRequestResponse(
                request_id=str(item.request.request_id),
                reasons=list(item.reasons),
            )
            for item in result.rejected
        ],
        scheduled_count=len(result.scheduled),
        unscheduled_count=len(result.unscheduled),
        cancelled=result.cancelled,
        room_usage=result.room_usage,
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(app=settings.app_name, version=settings.app_version)


@router.post(
    "/generate_schedule",
    response_model=ScheduleRunResponse,
    status_code=status.HTTP_200_OK,
)
def generate_schedule(
    payload: GenerateScheduleRequest,
    service: TimetableGenerationService = Depends(get_timetable_service),
) -> ScheduleRunResponse:
    """Run the placement core over the stored catalog."""
    try:
        result = service.generate_schedule(
            seed=payload.seed,
            persist_outputs=payload.persist,
        )
        return _run_response(result)
    except (SchedulingInputError, ScheduleValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected schedule generation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate schedule",
        ) from exc


@router.post(
    "/schedule/preview",
    response_model=ScheduleRunResponse,
    status_code=status.HTTP_200_OK,
)
def preview_schedule(
    payload: PreviewScheduleRequest,
    service: TimetableGenerationService = Depends(get_timetable_service),
) -> ScheduleRunResponse:
    """Schedule an inline catalog without persisting anything."""
    try:
        result = service.preview(
            requests=[item.to_domain() for item in payload.requests],
            rooms=[item.to_domain() for item in payload.rooms],
            fixed_schedules=[item.to_domain() for item in payload.fixed_schedules],
            departments=[item.to_domain() for item in payload.departments],
            seed=payload.seed,
        )
        return _run_response(result)
    except (SchedulingInputError, ScheduleValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected schedule preview failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to preview schedule",
        ) from exc


@router.get("/schedule", response_model=ScheduleListResponse)
def list_schedule(
    service: TimetableGenerationService = Depends(get_timetable_service),
) -> ScheduleListResponse:
    return ScheduleListResponse(
        sessions=[_session_response(session) for session in service.latest_schedule()]
    )
