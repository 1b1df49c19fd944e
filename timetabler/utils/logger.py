"""Process-wide logging setup for the scheduling service."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from timetabler.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """Install the stdout handler once per process; level defaults to settings."""
    global _configured
    if _configured and not force:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=force,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
