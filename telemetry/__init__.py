"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for audit events and metrics
"""

from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    initialize_telemetry,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "initialize_telemetry",
]
