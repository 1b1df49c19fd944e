"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and the timetable service, registers routers, and
runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from timetabler.controllers.schedule_controller import router as schedule_router
from timetabler.repository.data_repository import DataRepository
from timetabler.services.timetable_service import TimetableGenerationService
from timetabler.utils.config import Settings, get_settings
from timetabler.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency is created here and exposed through app.state; controllers
    resolve them per request.
    """
    resolved_settings = settings or get_settings()
    repository = DataRepository(resolved_settings)
    timetable_service = TimetableGenerationService(
        repository=repository,
        settings=resolved_settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, resolved_settings)
        yield

    app = FastAPI(
        title=resolved_settings.app_name,
        version=resolved_settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(schedule_router)

    app.state.repository = repository
    app.state.timetable_service = timetable_service
    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the demo catalog is seeded; seeding is skipped
    when rooms already exist or when disabled in settings.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo catalog (skipped if Rooms table not empty)")
        repository.seed_demo_catalog()

    logger.info("Startup complete; scheduler ready")


# Module-level app object for uvicorn
app = create_app()
