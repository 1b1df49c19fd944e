"""Environment-driven settings shared by every layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


ENV_PREFIX = "TIMETABLER_"
DEFAULT_DATABASE_PATH = Path(__file__).resolve().parents[2] / "data" / "timetabler.db"
DEFAULT_SCHEDULE_DAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
DEFAULT_STRAND_DAYS = DEFAULT_SCHEDULE_DAYS[:5]


@dataclass(frozen=True)
class Settings:
    app_name: str = "Timetabler"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = DEFAULT_DATABASE_PATH

    schedule_days: tuple[str, ...] = DEFAULT_SCHEDULE_DAYS
    day_start_time: str = "07:00"
    day_end_time: str = "20:00"
    slot_minutes: int = 30

    strand_days: tuple[str, ...] = DEFAULT_STRAND_DAYS
    strand_max_days: int = 4
    align_subject_times: bool = True

    random_seed: Optional[int] = None
    seed_demo_data: bool = True


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer") from exc


def _env_days(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = _env(name)
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from ``TIMETABLER_*`` variables, falling back to defaults."""
    defaults = Settings()
    database_path = _env("DATABASE_PATH")
    return Settings(
        app_name=_env("APP_NAME") or defaults.app_name,
        app_version=_env("APP_VERSION") or defaults.app_version,
        log_level=_env("LOG_LEVEL") or defaults.log_level,
        database_path=Path(database_path) if database_path else defaults.database_path,
        schedule_days=_env_days("SCHEDULE_DAYS", defaults.schedule_days),
        day_start_time=_env("DAY_START_TIME") or defaults.day_start_time,
        day_end_time=_env("DAY_END_TIME") or defaults.day_end_time,
        slot_minutes=_env_int("SLOT_MINUTES", defaults.slot_minutes) or defaults.slot_minutes,
        strand_days=_env_days("STRAND_DAYS", defaults.strand_days),
        strand_max_days=_env_int("STRAND_MAX_DAYS", defaults.strand_max_days)
        or defaults.strand_max_days,
        align_subject_times=_env_bool("ALIGN_SUBJECT_TIMES", defaults.align_subject_times),
        random_seed=_env_int("RANDOM_SEED", defaults.random_seed),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
    )
