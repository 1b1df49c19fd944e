"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from timetabler.repository.data_repository import DataRepository
from timetabler.services.timetable_service import TimetableGenerationService
from timetabler.utils.config import get_settings


def get_timetable_service(request: Request) -> TimetableGenerationService:
    service = getattr(request.app.state, "timetable_service", None)
    if service is None:
        repository: DataRepository | None = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = TimetableGenerationService(repository=repository, settings=get_settings())
            request.app.state.timetable_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Timetable service is not initialized",
        )
    return service
