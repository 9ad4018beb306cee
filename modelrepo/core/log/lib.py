"""Core logging implementation for modelrepo."""

import logging
import sys
from typing import Optional

from modelrepo.config import get_log_level

__all__ = ["get_logger", "setup_logging", "resolve_level"]

DEFAULT_LOGGER_NAME = "modelrepo"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level: int | str) -> int:
    """Turn a level name ("info", "DEBUG") or number into a logging level.

    Unknown names resolve to INFO.
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str | None = None, stream=sys.stderr) -> None:
    """Configure basic logging.

    Args:
        level: Logging level, numeric or by name. Defaults to
            MODELREPO_LOG_LEVEL.
        stream: Output stream.
    """
    logging.basicConfig(
        level=resolve_level(level if level is not None else get_log_level()),
        format=LOG_FORMAT,
        stream=stream,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Names are nested under the package logger, so ``get_logger("archive")``
    yields ``modelrepo.archive``.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    if not name or name == DEFAULT_LOGGER_NAME:
        return logging.getLogger(DEFAULT_LOGGER_NAME)
    if name.startswith(f"{DEFAULT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{name}")
