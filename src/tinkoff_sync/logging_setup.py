"""Package loggers.

Modules log through ``get_logger(__name__)``; output stays silent until the
CLI calls ``configure_logging``, which writes to stderr.
"""

import logging
import os

PACKAGE = "tinkoff_sync"
LEVEL_ENV = "TINKOFF_SYNC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def _level_of(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    """Send package log records to stderr.

    Args:
        level: Level number or name, ``TINKOFF_SYNC_LOG_LEVEL`` or INFO if unset
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(PACKAGE)
    for existing in list(logger.handlers):
        if isinstance(existing, logging.NullHandler):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(_level_of(level))
    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a package module."""
    package_logger = logging.getLogger(PACKAGE)
    if not _configured and not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
