"""
Subscriber registry for the live vehicle channel.

Holds the set of connected WebSocket clients and fans messages out to
them. Delivery is attempted once; a client whose send fails or times out
is dropped from the set.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, List, Optional, Set

from fastapi import WebSocket

from telemetry.service import TelemetryService

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


class SubscriberRegistry:
    """
    Registry of WebSocket subscribers.

    Messages have the shape ``{"type": event_name, "data": payload,
    "timestamp": ...}``. Broadcasts are sent to all subscribers
    concurrently; callers that await each broadcast before starting the
    next get FIFO delivery per connection.

    Attributes:
        active_connections: Set of currently connected WebSocket clients
        send_timeout: Seconds allowed for a single client send
    """

    def __init__(self, send_timeout: float = 5.0, telemetry: Optional[TelemetryService] = None):
        self.active_connections: Set[WebSocket] = set()
        self.send_timeout = send_timeout
        self.telemetry = telemetry
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a WebSocket connection and register it."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)

        logger.info(
            f"Subscriber connected. Total connections: {len(self.active_connections)}",
            extra={"extra_data": {
                "total_connections": len(self.active_connections),
                "client_host": websocket.client.host if websocket.client else "unknown",
            }}
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection; unknown connections are ignored."""
        async with self._lock:
            self.active_connections.discard(websocket)

        logger.info(
            f"Subscriber disconnected. Total connections: {len(self.active_connections)}",
            extra={"extra_data": {"total_connections": len(self.active_connections)}}
        )

    async def _send_to_client(self, websocket: WebSocket, message: dict) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "Send to subscriber timed out",
                extra={"extra_data": {"timeout_seconds": self.send_timeout}}
            )
            return False
        except Exception as e:
            logger.warning(
                f"Failed to send to subscriber: {e}",
                extra={"extra_data": {"error": str(e)}}
            )
            return False

    async def broadcast(self, event_name: str, payload: Any) -> int:
        """
        Send ``payload`` as event ``event_name`` to every current subscriber.

        Subscribers that connect after this call starts do not receive it.

        Returns:
            Number of subscribers that received the message
        """
        message = {
            "type": event_name,
            "data": payload,
            "timestamp": _utc_timestamp(),
        }
        return await self._fan_out(message)

    async def send_heartbeat(self) -> int:
        """Send a heartbeat to every subscriber, pruning dead connections."""
        return await self._fan_out({"type": "heartbeat", "timestamp": _utc_timestamp()})

    async def run_heartbeats(self, interval: float) -> None:
        """Send a heartbeat every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.send_heartbeat()
            except Exception as e:
                logger.error(
                    f"Heartbeat failed: {e}",
                    extra={"extra_data": {"error": str(e)}}
                )

    async def _fan_out(self, message: dict) -> int:
        async with self._lock:
            connections = list(self.active_connections)

        if not connections:
            return 0

        results = await asyncio.gather(
            *(self._send_to_client(websocket, message) for websocket in connections),
            return_exceptions=True,
        )

        successful_sends = 0
        failed: List[WebSocket] = []
        for websocket, result in zip(connections, results):
            if result is True:
                successful_sends += 1
            else:
                failed.append(websocket)

        if failed:
            async with self._lock:
                for websocket in failed:
                    self.active_connections.discard(websocket)

            logger.info(
                f"Removed {len(failed)} unreachable subscribers",
                extra={"extra_data": {
                    "removed_count": len(failed),
                    "remaining_connections": len(self.active_connections),
                }}
            )

        logger.debug(
            f"Broadcast complete: {successful_sends}/{len(connections)} subscribers received message",
            extra={"extra_data": {
                "message_type": message.get("type"),
                "successful_sends": successful_sends,
                "total_clients": len(connections),
            }}
        )
        if self.telemetry is not None:
            self.telemetry.record_metric(
                "broadcast.delivered",
                successful_sends,
                tags={"type": str(message.get("type"))},
            )

        return successful_sends

    @property
    def connection_count(self) -> int:
        return len(self.active_connections)
