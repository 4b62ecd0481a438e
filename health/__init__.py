"""
Health check module for the fleet backend.

Readiness pings the record store with a timeout and reports the change
feed subscription; liveness only confirms the process is running.
"""

from health.service import (
    DependencyHealth,
    HealthCheckService,
    HealthStatus,
)

__all__ = [
    "HealthCheckService",
    "HealthStatus",
    "DependencyHealth",
]
