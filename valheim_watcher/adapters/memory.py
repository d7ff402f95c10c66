"""In-memory notification sink."""
from collections import deque
from typing import Iterable
import structlog
from .base import SinkAdapter
from ..event_models import Notification

log = structlog.get_logger()


class InMemoryAdapter(SinkAdapter):
    """Keeps the most recent notifications in a bounded buffer."""

    def __init__(self, max_size: int = 1000):
        self._buffer: deque[Notification] = deque(maxlen=max_size)

    async def deliver(self, notification: Notification) -> None:
        """Append notification to the in-memory buffer."""
        self._buffer.append(notification)
        log.info(
            "notification.delivered",
            id=notification.id,
            kind=notification.kind,
            adapter="memory"
        )

    async def list_recent(self, limit: int = 50) -> Iterable[Notification]:
        """List recent notifications from memory buffer."""
        return list(reversed(self._buffer))[:limit]

    async def health_check(self) -> bool:
        """In-memory adapter is always healthy."""
        return True
