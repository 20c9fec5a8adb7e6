"""
Loguru configuration for the lesson engine.
"""

from __future__ import annotations

import sys

from loguru import logger

from config import get_settings

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Replace loguru's default sink with the configured stderr/file sinks."""
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)
