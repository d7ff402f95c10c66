"""Notification bus with pluggable sink adapters."""
from ..event_models import Notification
from ..adapters.base import SinkAdapter
from ..adapters.memory import InMemoryAdapter
from ..adapters.redis_stream import RedisStreamAdapter
from ..adapters.discord_webhook import DiscordWebhookAdapter
from ..config import Settings, get_settings
from ..streaming.websocket import stream_manager
from typing import Iterable
import structlog

log = structlog.get_logger()


class NotificationBus:
    """
    Delivers notifications to the configured sink and to websocket clients.

    The sink is selected based on the SINK_ADAPTER configuration setting.
    A failing sink never stops the caller: the failure is logged and the
    notification is still broadcast.
    """

    def __init__(self, adapter: SinkAdapter | None = None):
        """
        Initialize notification bus.

        Args:
            adapter: Sink adapter to use (defaults to configured adapter)
        """
        if adapter is None:
            adapter = create_adapter(get_settings())
        self._adapter = adapter

    async def publish(self, notification: Notification) -> bool:
        """
        Publish a notification.

        Returns:
            True if the sink accepted it, False if delivery failed
        """
        delivered = True
        try:
            await self._adapter.deliver(notification)
        except Exception as e:
            delivered = False
            log.error(
                "notification.delivery_failed",
                id=notification.id,
                kind=notification.kind,
                error=str(e),
                error_type=type(e).__name__,
            )

        await stream_manager.broadcast(notification)
        return delivered

    async def list_recent(self, limit: int = 50) -> Iterable[Notification]:
        """List recent notifications through the configured adapter."""
        return await self._adapter.list_recent(limit)

    async def health_check(self) -> bool:
        """Check sink adapter health."""
        return await self._adapter.health_check()

    async def close(self):
        """Release the sink's client connections."""
        await self._adapter.close()
        log.info("notification_bus.closed", adapter=self.adapter_name)

    @property
    def adapter_name(self) -> str:
        return type(self._adapter).__name__


def create_adapter(settings: Settings) -> SinkAdapter:
    """
    Create the sink adapter based on configuration.

    Falls back to the in-memory adapter when the selected backend is
    missing its URL.
    """
    if settings.SINK_ADAPTER == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "adapter.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured"
            )
            return InMemoryAdapter(max_size=settings.SINK_BUFFER_SIZE)

        log.info("adapter.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisStreamAdapter(redis_url=str(settings.REDIS_URL))

    if settings.SINK_ADAPTER == "discord":
        if not settings.DISCORD_WEBHOOK_URL:
            log.warning(
                "adapter.fallback",
                requested="discord",
                actual="memory",
                reason="DISCORD_WEBHOOK_URL not configured"
            )
            return InMemoryAdapter(max_size=settings.SINK_BUFFER_SIZE)

        log.info("adapter.selected", type="discord")
        return DiscordWebhookAdapter(settings.DISCORD_WEBHOOK_URL)

    log.info("adapter.selected", type="memory")
    return InMemoryAdapter(max_size=settings.SINK_BUFFER_SIZE)


# Global notification bus instance
bus = NotificationBus()
