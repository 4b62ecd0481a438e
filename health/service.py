"""
Health check service for the fleet backend.

Readiness looks at two dependencies:
- store: the record store must answer a ping within the check timeout
  (critical; failure makes the service unhealthy)
- change_feed: the change notifier should hold an open subscription
  (non-critical; failure only degrades the service, since the REST API
  keeps working without live updates)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)

CRITICAL_DEPENDENCIES = {"store"}


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "store", "change_feed")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall health status of the service.

    Attributes:
        status: Overall status - "healthy", "degraded", or "unhealthy"
        timestamp: When the health check was performed
        dependencies: List of individual dependency health statuses
    """
    status: str
    timestamp: datetime
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "timestamp": self.timestamp.isoformat() + "Z",
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Checks the readiness and liveness of the service.

    Attributes:
        store: The record store to ping
        notifier: Optional change notifier whose subscription is reported
        check_timeout: Timeout in seconds for the store ping
    """

    def __init__(self, store: Any, notifier: Optional[Any] = None, check_timeout: float = 5.0):
        self.store = store
        self.notifier = notifier
        self.check_timeout = check_timeout

    async def check_readiness(self) -> HealthStatus:
        """Check every dependency and aggregate the result."""
        dependencies = [await self._check_store()]
        if self.notifier is not None:
            dependencies.append(self._check_change_feed())

        return HealthStatus(
            status=self._determine_overall_status(dependencies),
            timestamp=datetime.utcnow(),
            dependencies=dependencies,
        )

    async def check_liveness(self) -> dict[str, Any]:
        """The process is running; dependencies are not consulted."""
        return {
            "status": "alive",
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }

    async def check_health(self) -> dict[str, Any]:
        """The service is accepting requests."""
        return {
            "status": "ok",
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }

    async def _check_store(self) -> DependencyHealth:
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(self.store.ping(), timeout=self.check_timeout)
            elapsed_ms = (time.perf_counter() - start_time) * 1000

            if result:
                return DependencyHealth(name="store", healthy=True, response_time_ms=elapsed_ms)

            logger.warning(f"Store ping returned False after {elapsed_ms:.2f}ms")
            return DependencyHealth(
                name="store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error="Store ping returned False"
            )

        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Store health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(
                name="store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )

        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Store health check failed: {str(e)}"
            logger.error(error_msg)
            return DependencyHealth(
                name="store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )

    def _check_change_feed(self) -> DependencyHealth:
        if self.notifier.is_subscribed:
            return DependencyHealth(name="change_feed", healthy=True, response_time_ms=0.0)

        error = self.notifier.last_error or "Change feed subscription is not open"
        return DependencyHealth(
            name="change_feed",
            healthy=False,
            response_time_ms=0.0,
            error=error
        )

    def _determine_overall_status(self, dependencies: list[DependencyHealth]) -> str:
        """
        - "healthy": all dependencies are healthy
        - "degraded": only non-critical dependencies are unhealthy
        - "unhealthy": a critical dependency (the store) is unhealthy
        """
        unhealthy = [dep for dep in dependencies if not dep.healthy]
        if not unhealthy:
            return "healthy"
        if any(dep.name in CRITICAL_DEPENDENCIES for dep in unhealthy):
            return "unhealthy"
        return "degraded"
