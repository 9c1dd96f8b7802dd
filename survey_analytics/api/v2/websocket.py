"""
WebSocket Endpoint

Subscribes a dashboard to one survey's progress channel for one operation.

Connection URL: ws://host/api/v2/ws/surveys/{survey_id}/{operation}
where ``operation`` is ``data_generation`` or ``sentiment_analysis``.

Message Protocol:
- Client -> Server:
    - {"type": "ping"} - Heartbeat ping
    - {"type": "get_stats"} - Connection statistics
- Server -> Client:
    - {"type": "connected", "channel": "..."} - Subscription confirmation
    - {"type": "pong", "timestamp": "..."} - Heartbeat response
    - progress events as published by the job (``status``, ``message``, ``percentage``, ...)
    - {"type": "error", "message": "..."} - Error message
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import logging
import json

from survey_analytics.services.progress_broadcaster import OPERATION_TARGETS, channel_name, get_broadcaster
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/surveys/{survey_id}/{operation}")
async def progress_websocket(websocket: WebSocket, survey_id: int, operation: str):
    if operation not in OPERATION_TARGETS:
        logger.warning(f"WebSocket rejected: unknown operation {operation!r}")
        await websocket.close(code=4004, reason="Unknown operation")
        return

    broadcaster = get_broadcaster()
    channel = channel_name(survey_id, operation)
    await broadcaster.connect(websocket, channel)

    try:
        await websocket.send_json(
            {
                "type": "connected",
                "channel": channel,
                "target": OPERATION_TARGETS[operation],
                "timestamp": utc_now().isoformat(),
            }
        )

        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON format"})
                continue

            message_type = data.get("type") if isinstance(data, dict) else None

            if message_type == "ping":
                broadcaster.update_heartbeat(websocket)
                await websocket.send_json({"type": "pong", "timestamp": utc_now().isoformat()})
            elif message_type == "get_stats":
                await websocket.send_json({"type": "stats", **broadcaster.get_connection_stats()})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {message_type}"})

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected from {channel}")
    finally:
        broadcaster.disconnect(websocket, channel)
