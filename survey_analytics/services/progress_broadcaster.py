"""
Progress Broadcaster

Fans out progress events for background jobs. One channel per survey and
operation (``survey_{id}_{operation}``); any number of WebSocket
subscribers or in-process queues may listen on a channel.

Delivery is best effort. Nothing is persisted or replayed, so a client that
connects mid-job only sees events published after it subscribed.
"""

from fastapi import WebSocket
from typing import Dict, Set
from datetime import datetime
import asyncio
import logging

from survey_analytics.schemas.progress import ProgressEvent
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)

DATA_GENERATION = "data_generation"
SENTIMENT_ANALYSIS = "sentiment_analysis"

# UI region each operation's events replace
OPERATION_TARGETS = {
    DATA_GENERATION: "data-generation-status",
    SENTIMENT_ANALYSIS: "sentiment-analysis-status",
}


def channel_name(survey_id: int, operation: str) -> str:
    return f"survey_{survey_id}_{operation}"


def target_for(operation: str) -> str:
    try:
        return OPERATION_TARGETS[operation]
    except KeyError:
        raise ValueError(f"Unknown operation: {operation}") from None


class ProgressBroadcaster:
    """
    Tracks subscribers per channel and pushes events to them.

    WebSockets that fail on send are dropped. Queue subscribers receive
    the same JSON-ready dicts the WebSockets do.
    """

    def __init__(self):
        # Maps channel to its WebSocket connections (supports multiple tabs)
        self._connections: Dict[str, Set[WebSocket]] = {}
        # Maps channel to in-process subscriber queues
        self._queues: Dict[str, Set[asyncio.Queue]] = {}
        # Heartbeat tracking: WebSocket -> last ping timestamp
        self._heartbeats: Dict[WebSocket, datetime] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, channel: str) -> None:
        """Accept a WebSocket and subscribe it to ``channel``."""
        await websocket.accept()

        async with self._lock:
            self._connections.setdefault(channel, set()).add(websocket)
            self._heartbeats[websocket] = utc_now()

        logger.info(f"Subscribed to {channel}: total_connections={self.total_connections}")

    def disconnect(self, websocket: WebSocket, channel: str) -> None:
        if channel in self._connections:
            self._connections[channel].discard(websocket)
            if not self._connections[channel]:
                del self._connections[channel]

        self._heartbeats.pop(websocket, None)
        logger.info(f"Unsubscribed from {channel}: total_connections={self.total_connections}")

    def update_heartbeat(self, websocket: WebSocket) -> None:
        self._heartbeats[websocket] = utc_now()

    def subscribe_queue(self, channel: str) -> asyncio.Queue:
        """Register an in-process subscriber. Unbounded so publishing never blocks."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.setdefault(channel, set()).add(queue)
        return queue

    def unsubscribe_queue(self, channel: str, queue: asyncio.Queue) -> None:
        if channel in self._queues:
            self._queues[channel].discard(queue)
            if not self._queues[channel]:
                del self._queues[channel]

    @property
    def total_connections(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    def subscriber_count(self, channel: str) -> int:
        return len(self._connections.get(channel, ())) + len(self._queues.get(channel, ()))

    async def publish(self, event: ProgressEvent) -> int:
        """
        Send ``event`` to every subscriber of its channel.

        Returns:
            Number of subscribers the event was delivered to
        """
        channel = channel_name(event.survey_id, event.operation)
        message = event.model_dump(mode="json")
        sent_count = 0

        for queue in list(self._queues.get(channel, ())):
            queue.put_nowait(message)
            sent_count += 1

        dead_connections = []
        for websocket in list(self._connections.get(channel, ())):
            try:
                await websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to {channel}: {e}")
                dead_connections.append(websocket)

        for ws in dead_connections:
            self.disconnect(ws, channel)

        logger.debug(f"{channel} {event.status} {event.percentage}% sent to {sent_count} subscribers")
        return sent_count

    async def check_stale_connections(self, timeout_seconds: int = 120) -> int:
        """Close connections without a heartbeat in ``timeout_seconds``."""
        now = utc_now()
        stale = []

        async with self._lock:
            for channel, sockets in self._connections.items():
                for websocket in sockets:
                    last = self._heartbeats.get(websocket)
                    if last is not None and (now - last).total_seconds() > timeout_seconds:
                        stale.append((websocket, channel))

        for websocket, channel in stale:
            try:
                await websocket.close(code=4002, reason="Connection timeout")
            except Exception as e:
                logger.debug(f"Close failed for stale connection on {channel}: {e}")
            self.disconnect(websocket, channel)

        if stale:
            logger.info(f"Cleaned up {len(stale)} stale WebSocket connections")
        return len(stale)

    def get_connection_stats(self) -> dict:
        return {
            "total_connections": self.total_connections,
            "channels": {
                channel: self.subscriber_count(channel)
                for channel in set(self._connections) | set(self._queues)
            },
        }


# Global broadcaster instance
broadcaster = ProgressBroadcaster()


def get_broadcaster() -> ProgressBroadcaster:
    return broadcaster
