# app/core/logging.py
from __future__ import annotations

import sys

from loguru import logger

from app.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with one stderr sink at the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {name}: {message} {extra}",
        backtrace=False,
        diagnose=False,
    )
