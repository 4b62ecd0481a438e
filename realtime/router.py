"""
WebSocket endpoint for live vehicle changes.
"""

import json
import logging
from datetime import datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/api/vehicles/live")
async def vehicles_live_websocket(websocket: WebSocket):
    """
    Real-time channel for vehicle changes.

    Message types sent to clients:
    - vehicle-change: one store change event, forwarded unmodified
        {
            "type": "vehicle-change",
            "data": {"operationType": "update", "documentKey": {...}, ...},
            "timestamp": "2024-01-01T00:00:00.000Z"
        }
    - pong: reply to a client ``{"type": "ping"}``
    - heartbeat: keep-alive

    Other client messages are ignored.
    """
    registry = websocket.app.state.subscriber_registry
    await registry.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Received non-JSON WebSocket message: {data[:100]}")
                continue

            message_type = message.get("type", "unknown") if isinstance(message, dict) else "unknown"
            if message_type == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.utcnow().isoformat() + "Z",
                })
            else:
                logger.debug(
                    f"Ignoring WebSocket message type: {message_type}",
                    extra={"extra_data": {"message_type": message_type}}
                )
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(
            f"WebSocket error: {e}",
            extra={"extra_data": {"error": str(e)}}
        )
    finally:
        await registry.disconnect(websocket)
