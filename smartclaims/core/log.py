"""Logging setup for the SmartClaims backend."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a stderr handler to the ``smartclaims`` logger once."""

    logger = logging.getLogger("smartclaims")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    return logger


__all__ = ["configure_logging"]
