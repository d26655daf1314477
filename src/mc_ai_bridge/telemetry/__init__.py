"""Telemetry and logging boundaries."""

from .logging import LoggingTelemetry, StatusEvent, Telemetry, configure_logging

__all__ = ["LoggingTelemetry", "StatusEvent", "Telemetry", "configure_logging"]
