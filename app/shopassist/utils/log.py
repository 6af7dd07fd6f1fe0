"""Logger setup and structured event lines ("<kind> <json payload>")."""

from __future__ import annotations
import json
import logging
import sys
from typing import Any

ROOT_LOGGER = "shopassist"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Install a single stdout handler on the package logger. Safe to call again."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level if isinstance(level, int) else level.upper())
    logger.handlers.clear()

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(ch)
    logger.propagate = False
    return logger


def log_event(
    logger: logging.Logger, kind: str, payload: dict[str, Any], *, level: int = logging.INFO
) -> None:
    try:
        logger.log(level, "%s %s", kind, json.dumps(payload, default=str))
    except (TypeError, ValueError):
        logger.log(level, "%s %s", kind, str(payload))
