"""Logging setup and the event-log sink used by the execution pipeline."""

from __future__ import annotations

import logging
import sys
from typing import Protocol


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
EVENT_LOGGER_NAME = "recorder_proxy.events"


class EventLog(Protocol):
    """Sink that receives the raw exception behind a logged failure."""

    def write_entry(self, exc: BaseException) -> None: ...


class LoggingEventLog:
    """Default EventLog: writes the exception with its traceback to a dedicated logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(EVENT_LOGGER_NAME)

    def write_entry(self, exc: BaseException) -> None:
        self._logger.error(
            "%s: %s", type(exc).__name__, exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the root logger at ``level``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
