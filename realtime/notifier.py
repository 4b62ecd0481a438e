"""
Change notifier: bridges the store's change feed to the subscriber registry.

One background task holds the subscription and forwards every change
event, unmodified, as a ``vehicle-change`` broadcast. Each broadcast is
awaited before the next event is read, so subscribers see events in feed
order. When the feed fails or closes the task resubscribes with capped
exponential backoff, indefinitely by default. Nothing is buffered: events
that happen while no subscription is open are not replayed.
"""

import asyncio
import logging
from typing import Any, Optional

from realtime.registry import SubscriberRegistry
from resilience.retry import RetryConfig
from store.record_store import RecordStore
from telemetry.service import TelemetryService

logger = logging.getLogger(__name__)

VEHICLE_CHANGE_EVENT = "vehicle-change"


class ChangeNotifier:
    """
    Long-lived change feed subscription.

    Args:
        store: Record store whose change feed is watched
        registry: Registry that receives each event as a broadcast
        retry_config: Backoff between resubscriptions; ``max_attempts=None``
            retries forever
        event_name: Event name used for broadcasts
        telemetry: Optional telemetry service for restart counters
    """

    def __init__(
        self,
        store: RecordStore,
        registry: SubscriberRegistry,
        retry_config: Optional[RetryConfig] = None,
        event_name: str = VEHICLE_CHANGE_EVENT,
        telemetry: Optional[TelemetryService] = None,
    ):
        self.store = store
        self.registry = registry
        self.retry_config = retry_config or RetryConfig(
            max_attempts=None, initial_delay=1.0, exponential_base=2.0, max_delay=30.0
        )
        self.event_name = event_name
        self.telemetry = telemetry

        self.events_forwarded = 0
        self.restarts = 0
        self.last_error: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._subscribed = asyncio.Event()

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed.is_set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, timeout: float = 5.0) -> bool:
        """
        Start the subscription task; later calls do nothing.

        Waits up to ``timeout`` seconds for the feed to open but never
        raises: a feed that is not open yet keeps retrying in the
        background.

        Returns:
            Whether the feed is open
        """
        if self._task is not None:
            return self.is_subscribed

        self._task = asyncio.create_task(self._run(), name="change-notifier")
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Change feed not open yet, continuing startup",
                extra={"extra_data": {"timeout_seconds": timeout, "last_error": self.last_error}}
            )
        return self.is_subscribed

    async def stop(self) -> None:
        """Cancel the subscription task and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._subscribed.clear()
        logger.info("Change notifier stopped")

    async def on_change(self, event: dict[str, Any]) -> None:
        """Forward one change event to every subscriber, unmodified."""
        self.events_forwarded += 1
        await self.registry.broadcast(self.event_name, event)

    async def _run(self) -> None:
        attempt = 0
        while True:
            try:
                async with self.store.watch() as changes:
                    self._subscribed.set()
                    attempt = 0
                    logger.info("Subscribed to change feed")
                    async for event in changes:
                        await self._forward(event)
                self.last_error = None
                logger.warning("Change feed closed by the store")
            except self.retry_config.retryable_exceptions as e:
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error(
                    "Change feed failed",
                    extra={"extra_data": {
                        "error_type": type(e).__name__,
                        "error": str(e),
                        "attempt": attempt + 1,
                    }}
                )
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error(
                    "Change feed failed with a non-retryable error, notifications stopped",
                    extra={"extra_data": {"error_type": type(e).__name__, "error": str(e)}},
                    exc_info=True,
                )
                return
            finally:
                self._subscribed.clear()

            if self.retry_config.attempts_exhausted(attempt + 1):
                logger.error(
                    "Change feed resubscription attempts exhausted, notifications stopped",
                    extra={"extra_data": {"attempts": attempt + 1}}
                )
                return

            delay = self.retry_config.delay_for(attempt)
            attempt += 1
            self.restarts += 1
            logger.info(
                f"Resubscribing to change feed in {delay:.2f}s",
                extra={"extra_data": {"attempt": attempt, "delay_seconds": delay}}
            )
            if self.telemetry is not None:
                self.telemetry.record_metric("change_feed.restart", 1, tags={"attempt": str(attempt)})
            await asyncio.sleep(delay)

    async def _forward(self, event: dict[str, Any]) -> None:
        # A failed broadcast must not cost the subscription its position
        try:
            await self.on_change(event)
        except Exception as e:
            logger.error(
                "Failed to broadcast change event",
                extra={"extra_data": {
                    "operation_type": event.get("operationType"),
                    "error": str(e),
                }},
                exc_info=True,
            )
