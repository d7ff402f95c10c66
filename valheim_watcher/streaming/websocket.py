"""WebSocket notification streaming with rate limiting and keepalive."""
import asyncio
import time
import structlog
from fastapi import WebSocket, WebSocketDisconnect
from typing import Set
from ..event_models import Notification
import orjson

log = structlog.get_logger()


class NotificationStreamManager:
    """
    Manages WebSocket connections for notification streaming.

    Every notification the watcher delivers is broadcast to all connected
    clients. Clients that fail a send are dropped.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self._connections.add(websocket)
        log.info("websocket.connected", total_connections=len(self._connections))

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        self._connections.discard(websocket)
        log.info("websocket.disconnected", total_connections=len(self._connections))

    async def broadcast(self, notification: Notification):
        """
        Broadcast a notification to all connected clients.

        Args:
            notification: Notification to broadcast
        """
        if not self._connections:
            return

        message = orjson.dumps({
            "type": "notification",
            "data": notification.model_dump()
        })

        disconnected = set()
        for connection in list(self._connections):
            try:
                await connection.send_bytes(message)
            except Exception as e:
                log.warning("websocket.send_failed", error=str(e))
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)

    async def send_ping(self, websocket: WebSocket):
        """Send ping message to keep connection alive."""
        try:
            await websocket.send_json({"type": "ping", "ts": time.time()})
        except Exception as e:
            log.warning("websocket.ping_failed", error=str(e))

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self._connections)


# Global stream manager instance
stream_manager = NotificationStreamManager()


class RateLimiter:
    """Simple sliding window rate limiter for client messages."""

    def __init__(self, max_messages: int = 100, window_seconds: int = 60):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._message_times: list[float] = []

    def check_limit(self) -> bool:
        """
        Record a message if the window allows it.

        Returns:
            True if within limit, False if exceeded
        """
        now = time.time()
        cutoff = now - self.window_seconds
        self._message_times = [t for t in self._message_times if t > cutoff]

        if len(self._message_times) >= self.max_messages:
            return False

        self._message_times.append(now)
        return True

    def remaining(self) -> int:
        """Get number of remaining messages in current window."""
        cutoff = time.time() - self.window_seconds
        recent = len([t for t in self._message_times if t > cutoff])
        return max(0, self.max_messages - recent)


async def handle_websocket_stream(
    websocket: WebSocket,
    ping_interval: int = 30,
    rate_limit_messages: int = 100,
    rate_limit_window: int = 60
):
    """
    Handle a WebSocket connection for notification streaming.

    Args:
        websocket: WebSocket connection
        ping_interval: Seconds between ping messages (keepalive)
        rate_limit_messages: Max client messages per window
        rate_limit_window: Rate limit window in seconds
    """
    rate_limiter = RateLimiter(rate_limit_messages, rate_limit_window)

    await stream_manager.connect(websocket)

    try:
        await websocket.send_json({
            "type": "welcome",
            "message": "Connected to valheim-watcher notification stream",
            "rate_limit": {
                "max_messages": rate_limit_messages,
                "window_seconds": rate_limit_window
            }
        })

        last_ping = time.time()

        while True:
            if time.time() - last_ping > ping_interval:
                await stream_manager.send_ping(websocket)
                last_ping = time.time()

            try:
                # Short timeout so pings keep going out while the client is idle
                message = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=1.0
                )
            except asyncio.TimeoutError:
                continue

            if not rate_limiter.check_limit():
                await websocket.send_json({
                    "type": "error",
                    "message": "Rate limit exceeded",
                    "retry_after": rate_limit_window
                })
                continue

            if message == "pong":
                log.debug("websocket.pong_received")
            elif message == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        log.info("websocket.client_disconnected")
    except Exception as e:
        log.error("websocket.error", error=str(e), exc_info=True)
    finally:
        stream_manager.disconnect(websocket)
