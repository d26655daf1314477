"""Status telemetry and structured logging sinks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from rich.logging import RichHandler


class StatusEvent(str, Enum):
    """Status changes reported to operators and status displays."""

    LISTENING = "listening"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    BATCH_TIMEOUT = "batch_timeout"
    PAYLOAD_REJECTED = "payload_rejected"
    STOPPED = "stopped"


class Telemetry(Protocol):
    """Reports operational events and bridge status changes."""

    def emit(self, event_name: StatusEvent, payload: dict) -> None:
        """Publish telemetry event to the configured sink."""


class LoggingTelemetry:
    """Logs every event and keeps the latest connection status.

    Optional subscribers receive each event, e.g. to drive a status line.
    """

    _CONNECTION_EVENTS = {
        StatusEvent.LISTENING,
        StatusEvent.CONNECTED,
        StatusEvent.DISCONNECTED,
        StatusEvent.ERROR,
        StatusEvent.STOPPED,
    }

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("mc_ai_bridge.telemetry")
        self._subscribers: list[Callable[[StatusEvent, dict], None]] = []
        self.status: StatusEvent | None = None

    def subscribe(self, callback: Callable[[StatusEvent, dict], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, event_name: StatusEvent, payload: dict) -> None:
        if event_name in self._CONNECTION_EVENTS:
            self.status = event_name

        level = logging.WARNING if event_name in {StatusEvent.ERROR, StatusEvent.BATCH_TIMEOUT} else logging.INFO
        self._logger.log(level, "status_%s", event_name.value, extra={"status_payload": payload})
        for callback in self._subscribers:
            callback(event_name, payload)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging through rich for console output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
