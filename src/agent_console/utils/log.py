"""Logging routed through the output router."""

import logging
import os
from typing import Optional

from ..output import OutputRouter, router as default_router

LOG_ENV_VAR = "AGENT_CONSOLE_LOG"
LOG_FORMAT = "[%(levelname)s] %(message)s"

_LEVEL_NAMES = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": logging.CRITICAL + 10,
}


def parse_level(name: Optional[str], default: int = logging.INFO) -> int:
    """Parse a level name such as ``warn`` or ``DEBUG``."""
    if not name:
        return default
    return _LEVEL_NAMES.get(name.strip().lower(), default)


class OutputLogHandler(logging.Handler):
    """Handler that writes records as lines through an output router.

    Records at WARNING and above are flagged as errors. With ``stderr_only``
    every record is.
    """

    def __init__(self, target: Optional[OutputRouter] = None, stderr_only: bool = False,
                 level: int = logging.NOTSET):
        super().__init__(level)
        self._router = target or default_router
        self.stderr_only = stderr_only
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            is_error = self.stderr_only or record.levelno >= logging.WARNING
            self._router.write_line(message, is_error)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self._router.flush()


def init_logger(default_level: str = "info", stderr_only: bool = False,
                target: Optional[OutputRouter] = None) -> logging.Logger:
    """Attach an ``OutputLogHandler`` to the package logger.

    The level comes from ``AGENT_CONSOLE_LOG`` when set, else ``default_level``.
    Calling it again replaces the previously attached handler.
    """
    logger = logging.getLogger("agent_console")
    level = parse_level(os.getenv(LOG_ENV_VAR), parse_level(default_level))

    for handler in list(logger.handlers):
        if isinstance(handler, OutputLogHandler):
            logger.removeHandler(handler)

    logger.addHandler(OutputLogHandler(target, stderr_only=stderr_only))
    logger.setLevel(level)
    logger.propagate = False
    return logger
