"""
Unit tests for the WebSocket subscriber registry.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from realtime.registry import SubscriberRegistry


def make_websocket(send_json=None) -> MagicMock:
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = send_json or AsyncMock()
    websocket.client = None
    return websocket


class TestConnections:
    """Tests for connect and disconnect."""

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, mock_websocket):
        registry = SubscriberRegistry()

        await registry.connect(mock_websocket)

        mock_websocket.accept.assert_awaited_once()
        assert registry.connection_count == 1

    @pytest.mark.asyncio
    async def test_disconnect_removes(self, mock_websocket):
        registry = SubscriberRegistry()
        await registry.connect(mock_websocket)

        await registry.disconnect(mock_websocket)

        assert registry.connection_count == 0

    @pytest.mark.asyncio
    async def test_disconnect_unknown_is_ignored(self, mock_websocket):
        registry = SubscriberRegistry()

        await registry.disconnect(mock_websocket)

        assert registry.connection_count == 0


class TestBroadcast:
    """Tests for fan-out delivery."""

    @pytest.mark.asyncio
    async def test_message_shape(self, mock_websocket):
        registry = SubscriberRegistry()
        await registry.connect(mock_websocket)
        payload = {"operationType": "insert", "documentKey": {"_id": "abc"}}

        delivered = await registry.broadcast("vehicle-change", payload)

        assert delivered == 1
        message = mock_websocket.send_json.await_args.args[0]
        assert message["type"] == "vehicle-change"
        assert message["data"] == payload
        assert message["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_no_subscribers(self):
        assert await SubscriberRegistry().broadcast("vehicle-change", {}) == 0

    @pytest.mark.asyncio
    async def test_failing_client_is_pruned(self):
        registry = SubscriberRegistry()
        healthy = make_websocket()
        broken = make_websocket(AsyncMock(side_effect=RuntimeError("connection reset")))
        await registry.connect(healthy)
        await registry.connect(broken)

        delivered = await registry.broadcast("vehicle-change", {"n": 1})

        assert delivered == 1
        assert registry.active_connections == {healthy}

    @pytest.mark.asyncio
    async def test_slow_client_times_out_and_is_pruned(self):
        async def never_returns(message):
            await asyncio.sleep(10)

        registry = SubscriberRegistry(send_timeout=0.05)
        healthy = make_websocket()
        stalled = make_websocket(AsyncMock(side_effect=never_returns))
        await registry.connect(healthy)
        await registry.connect(stalled)

        delivered = await registry.broadcast("vehicle-change", {"n": 1})

        assert delivered == 1
        assert registry.connection_count == 1
        healthy.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sequential_broadcasts_keep_order(self, mock_websocket):
        registry = SubscriberRegistry()
        await registry.connect(mock_websocket)

        for n in range(5):
            await registry.broadcast("vehicle-change", {"n": n})

        sent = [call.args[0]["data"]["n"] for call in mock_websocket.send_json.await_args_list]
        assert sent == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_heartbeat(self, mock_websocket):
        registry = SubscriberRegistry()
        await registry.connect(mock_websocket)

        assert await registry.send_heartbeat() == 1
        assert mock_websocket.send_json.await_args.args[0]["type"] == "heartbeat"

    @pytest.mark.asyncio
    async def test_heartbeat_loop_runs_until_cancelled(self, mock_websocket):
        registry = SubscriberRegistry()
        await registry.connect(mock_websocket)

        task = asyncio.create_task(registry.run_heartbeats(0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert mock_websocket.send_json.await_count >= 2

    @pytest.mark.asyncio
    async def test_delivery_metric_recorded(self, mock_websocket):
        telemetry = MagicMock()
        registry = SubscriberRegistry(telemetry=telemetry)
        await registry.connect(mock_websocket)

        await registry.broadcast("vehicle-change", {})

        telemetry.record_metric.assert_called_once_with(
            "broadcast.delivered", 1, tags={"type": "vehicle-change"}
        )
