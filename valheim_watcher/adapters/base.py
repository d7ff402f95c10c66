"""Base adapter interface for notification sinks."""
from abc import ABC, abstractmethod
from typing import Iterable
from ..event_models import Notification


class SinkAdapter(ABC):
    """Abstract interface for notification delivery backends."""

    @abstractmethod
    async def deliver(self, notification: Notification) -> None:
        """
        Deliver a notification to the backend.

        Args:
            notification: The notification to deliver

        Raises:
            Exception: Backend specific delivery failure; callers log it
                and carry on
        """
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> Iterable[Notification]:
        """
        Retrieve recently delivered notifications, newest first.

        Args:
            limit: Maximum number of notifications to return
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

    async def close(self) -> None:
        """Release client connections held by the backend."""
        pass
