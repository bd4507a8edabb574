"""
WebSocket Service for real-time game updates
Fans round events out to every connected participant
"""

import asyncio
import json
import logging
import time
from decimal import Decimal
from typing import Dict, Any, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Errors that only mean the client already went away
_IGNORED_SEND_ERRORS = [
    "close message has been sent",
    "1001",
    "connection closed",
    "websocket connection is closed",
    "broken pipe",
    "connection reset",
    "connectionclosed",
    "websocketdisconnect",
    "client disconnected"
]


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_message(event: str, data: Any) -> Dict[str, Any]:
    return {
        "type": event,
        "timestamp": time.time(),
        "data": data
    }


class WebSocketManager:
    """Manages WebSocket connections and broadcasts.

    Every connection has its own outbound queue drained by a dedicated sender
    task. broadcast() and send_to() only enqueue, so the caller never waits on
    a slow peer; per-connection order is the enqueue order. A peer whose queue
    overflows or whose send times out is disconnected on its own.
    """

    def __init__(self, send_timeout: float = 5.0, queue_size: int = 256):
        # Active connections by connection id
        self.active_connections: Dict[str, WebSocket] = {}
        # Connection metadata
        self.connection_info: Dict[str, Dict[str, Any]] = {}
        self.outbound: Dict[str, asyncio.Queue] = {}
        self.sender_tasks: Dict[str, asyncio.Task] = {}
        self._closing: Set[asyncio.Task] = set()
        self.send_timeout = send_timeout
        self.queue_size = queue_size
        self.messages_sent = 0
        self.send_failures = 0

    async def connect(self, websocket: WebSocket, connection_id: str) -> bool:
        """Accept WebSocket connection and start its sender"""
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self.active_connections[connection_id] = websocket
        self.connection_info[connection_id] = {
            "connected_at": time.time(),
            "last_seen": time.time(),
        }
        self.outbound[connection_id] = queue
        self.sender_tasks[connection_id] = asyncio.create_task(
            self._sender_loop(connection_id, queue)
        )
        logger.debug(f"🔌 WebSocket connected: {connection_id}")
        return True

    async def disconnect(self, connection_id: str, reason: str = "Client disconnect"):
        """Remove a connection and stop its sender"""
        websocket = self.active_connections.pop(connection_id, None)
        self.connection_info.pop(connection_id, None)
        self.outbound.pop(connection_id, None)
        task = self.sender_tasks.pop(connection_id, None)
        # The sender itself disconnects on send failure; it must not cancel itself
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if websocket is None:
            return
        try:
            await websocket.close()
        except Exception as e:
            # Ignore normal close errors when the client already left
            if "Unexpected ASGI message" not in str(e) and "close message has been sent" not in str(e):
                logger.warning(f"Error closing WebSocket {connection_id}: {e}")
        logger.debug(f"🔌 WebSocket disconnected: {connection_id} ({reason})")

    def touch(self, connection_id: str):
        if connection_id in self.connection_info:
            self.connection_info[connection_id]["last_seen"] = time.time()

    async def _sender_loop(self, connection_id: str, queue: asyncio.Queue):
        while True:
            message = await queue.get()
            if not await self.send_to_user(connection_id, message):
                return

    def enqueue(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """Queue a message for one connection without waiting on the network"""
        queue = self.outbound.get(connection_id)
        if queue is None:
            return False
        try:
            queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.warning(f"🚨 Outbound queue full for {connection_id}, dropping connection")
            self.send_failures += 1
            self.outbound.pop(connection_id, None)
            task = asyncio.create_task(self.disconnect(connection_id, "Outbound queue full"))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
            return False

    async def send_to_user(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """Write one message to a connection; used by its sender task"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            payload = json.dumps(message, default=_json_default)
            await asyncio.wait_for(websocket.send_text(payload), timeout=self.send_timeout)
            self.messages_sent += 1
            return True
        except Exception as e:
            error_str = str(e).lower()
            error_type = type(e).__name__.lower()
            should_ignore = (
                any(ignore_error in error_str for ignore_error in _IGNORED_SEND_ERRORS) or
                any(ignore_error in error_type for ignore_error in _IGNORED_SEND_ERRORS)
            )
            if not should_ignore:
                logger.error(f"❌ Failed to send message to {connection_id}: {e!r}")
            self.send_failures += 1
            await self.disconnect(connection_id, f"Send failed: {e!r}")
            return False

    def broadcast_to_all(self, message: Dict[str, Any]) -> int:
        """Queue a message for every connected client"""
        queued = sum(1 for connection_id in list(self.outbound) if self.enqueue(connection_id, message))
        if queued:
            logger.debug(f"📡 Queued {message.get('type')} for {queued} clients")
        return queued

    # Engine-facing broadcast primitive

    async def broadcast(self, event: str, data: Any) -> int:
        return self.broadcast_to_all(build_message(event, data))

    async def send_to(self, connection_id: str, event: str, data: Any) -> bool:
        return self.enqueue(connection_id, build_message(event, data))

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_connections": len(self.active_connections),
            "queued_messages": sum(queue.qsize() for queue in self.outbound.values()),
            "messages_sent": self.messages_sent,
            "send_failures": self.send_failures,
        }
