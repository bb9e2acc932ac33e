"""Log level control for the ``entra_cert_auth.*`` loggers. Handlers belong to the host application."""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "entra_cert_auth"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, bool):
        raise ValueError(f"{PACKAGE_LOGGER}: invalid log level {level!r}")
    if isinstance(level, int):
        if level < 0:
            raise ValueError(f"{PACKAGE_LOGGER}: log level must be >= 0, got {level}")
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"{PACKAGE_LOGGER}: unknown log level {level!r}")
    return resolved


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Set the level of the package logger and return it.

    Accepts level names in any case (``"debug"``, ``"WARNING"``) or numeric
    levels. Raises ValueError for anything else, before touching the logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_resolve_level(level))
    return logger
