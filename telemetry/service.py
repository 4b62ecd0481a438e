"""
Telemetry service for structured logging.

Every log line is a single JSON object with timestamp, level, message,
logger name and the request id of the request being served, so a vehicle
write can be followed from the HTTP call through the change feed to the
broadcast.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from middleware.request_id import request_id_var


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - message: The log message
    - logger: Name of the logger that produced the entry
    - request_id: Correlation ID for request tracing

    Additional fields can be included via the 'extra_data' attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


class TelemetryService:
    """
    Centralized telemetry for logging, audit events and metrics.

    Metrics are emitted as DEBUG log lines; there is no separate metrics
    backend.
    """

    def __init__(self, settings: Optional[Any] = None):
        """
        Initialize the telemetry service.

        Args:
            settings: Application settings providing log_level
        """
        self.settings = settings
        self._logger: Optional[logging.Logger] = None
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Install the JSON formatter on the root logger at the configured level."""
        log_level_str = "INFO"
        if self.settings and hasattr(self.settings, "log_level"):
            log_level_str = self.settings.log_level

        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicate logs
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        stdout_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(stdout_handler)

        self._logger = logging.getLogger("telemetry")
        self._logger.info("Telemetry service initialized", extra={
            "extra_data": {"log_level": log_level_str}
        })

    def log_audit_event(
        self,
        event_type: str,
        user_id: Optional[str],
        resource_type: str,
        resource_id: Optional[str],
        action: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an audit event for a write to the fleet.

        Args:
            event_type: Type of audit event (e.g., "vehicle_write", "fleet_reseed")
            user_id: Caller identity, or None for anonymous callers
            resource_type: Type of resource being acted upon
            resource_id: ID of the specific resource
            action: Action being performed (e.g., "create", "update", "reseed")
            details: Additional details about the event
        """
        audit_data = {
            "audit_event": True,
            "event_type": event_type,
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "action": action,
        }

        if details:
            audit_data["details"] = details

        self._logger.info(
            f"Audit: {event_type} - {action} on {resource_type}",
            extra={"extra_data": audit_data}
        )

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Record a custom metric such as broadcast fan-out or request latency.

        Args:
            name: Name of the metric
            value: Metric value
            tags: Optional tags for metric dimensions
        """
        metric_data: Dict[str, Any] = {
            "metric_name": name,
            "metric_value": value,
        }

        if tags:
            metric_data["tags"] = tags

        self._logger.debug(
            f"Metric: {name}={value}",
            extra={"extra_data": metric_data}
        )


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """
    Configure logging and build the telemetry service for an app.

    Args:
        settings: Application settings for configuration

    Returns:
        The initialized telemetry service
    """
    return TelemetryService(settings)
