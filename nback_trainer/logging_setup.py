"""Logging setup for the trainer's command-line entry point."""

from __future__ import annotations

import logging
import os
from logging import Logger

LOG_LEVEL_ENV = "NBACK_LOG_LEVEL"


def level_from_env(default: int = logging.WARNING) -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if raw == "":
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def configure_logging(level: int | None = None, *, name: str = "nback_trainer") -> Logger:
    """Attach one stream handler to the package logger and return it.

    Calling it again only adjusts the level.
    """

    logger = logging.getLogger(name)
    if not any(isinstance(existing, logging.StreamHandler) for existing in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level_from_env() if level is None else level)
    logger.propagate = False
    return logger
