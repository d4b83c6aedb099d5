"""Logging setup for diffmod.

Engine modules log through ``logging.getLogger(__name__)`` below the
``diffmod`` logger. :func:`configure_logging` sets that logger's level and can
attach a single file handler; repeated calls never duplicate handlers.
"""

from __future__ import annotations

import logging
from pathlib import Path

from diffmod.config import LogLevel

LOGGER_NAME = "diffmod"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    log_level: LogLevel | str = LogLevel.WARNING,
    *,
    log_file: Path | str | None = None,
) -> logging.Logger:
    """Configure and return the package logger."""

    logger = logging.getLogger(LOGGER_NAME)
    level_value = _to_logging_level(log_level)
    logger.setLevel(level_value)

    if log_file is not None:
        path = Path(log_file)
        existing = [
            h
            for h in logger.handlers
            if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path.resolve()
        ]
        if not existing:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
        for handler in logger.handlers:
            handler.setLevel(level_value)

    return logger


def _to_logging_level(value: LogLevel | str) -> int:
    mapping = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
    }
    if isinstance(value, LogLevel):
        return mapping[value]
    if isinstance(value, str):
        try:
            return mapping[LogLevel(value)]
        except ValueError:
            return logging.WARNING
    return logging.WARNING


__all__ = [
    "configure_logging",
    "LOGGER_NAME",
    "_to_logging_level",
]
