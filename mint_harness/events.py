"""
Live event fan-out for the dashboard (server-sent events).

Webhook notifications received from the Mint API are pushed to every
connected `/api/events` listener. Listeners are only added and removed on the
event loop thread, so no locking is needed.
"""

import asyncio
import json
import uuid
from typing import Any, AsyncIterator

import structlog

logger = structlog.get_logger()


def format_sse(event: str, data: Any) -> str:
    """Encode one server-sent event frame."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


class EventBroadcaster:
    """Process-wide set of connected live-event listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, asyncio.Queue[str]] = {}

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def connect(self) -> tuple[str, "asyncio.Queue[str]"]:
        listener_id = str(uuid.uuid4())
        queue: asyncio.Queue[str] = asyncio.Queue()
        self._listeners[listener_id] = queue
        logger.info("listener_connected", id=listener_id, listeners=len(self._listeners))
        return listener_id, queue

    def disconnect(self, listener_id: str) -> None:
        if self._listeners.pop(listener_id, None) is not None:
            logger.info("listener_disconnected", id=listener_id, listeners=len(self._listeners))

    def publish(self, event: str, data: Any) -> int:
        """Queue an event for every listener. Returns the number reached."""
        frame = format_sse(event, data)
        for queue in self._listeners.values():
            queue.put_nowait(frame)
        return len(self._listeners)

    async def stream(self) -> AsyncIterator[str]:
        """SSE frames for one listener: `connected`, then every published event."""
        listener_id, queue = self.connect()
        try:
            yield format_sse("connected", {"id": listener_id})
            while True:
                yield await queue.get()
        finally:
            self.disconnect(listener_id)
