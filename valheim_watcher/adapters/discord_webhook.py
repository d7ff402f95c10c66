"""Discord webhook notification sink."""
from collections import deque
from typing import Iterable
import httpx
import structlog
from .base import SinkAdapter
from .messages import render_message
from ..event_models import Notification, WorldSaved

log = structlog.get_logger()


class DiscordWebhookAdapter(SinkAdapter):
    """Posts notifications to a Discord channel through a webhook.

    World saves are kept locally but not posted; they happen every few
    minutes and would flood the channel.
    """

    def __init__(self, webhook_url: str, username: str = "Valheim Dedicated Server",
                 timeout: float = 10.0, history_size: int = 200,
                 client: httpx.AsyncClient | None = None):
        """
        Initialize Discord webhook adapter.

        Args:
            webhook_url: Full Discord webhook URL
            username: Name the messages are posted under
            timeout: HTTP timeout in seconds
            history_size: Number of delivered notifications kept for listing
            client: Optional preconfigured HTTP client
        """
        self.webhook_url = webhook_url
        self.username = username
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._history: deque[Notification] = deque(maxlen=history_size)

    async def deliver(self, notification: Notification) -> None:
        """
        Post the rendered notification to the webhook.

        Raises:
            httpx.HTTPError: If Discord is unreachable or rejects the message
        """
        if not isinstance(notification, WorldSaved):
            try:
                response = await self._client.post(
                    self.webhook_url,
                    json={"content": render_message(notification), "username": self.username},
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                log.error("discord.deliver_failed", error=str(e), notification_id=notification.id)
                raise

        self._history.append(notification)
        log.info(
            "notification.delivered",
            id=notification.id,
            kind=notification.kind,
            adapter="discord_webhook"
        )

    async def list_recent(self, limit: int = 50) -> Iterable[Notification]:
        """List notifications delivered by this process, newest first."""
        return list(reversed(self._history))[:limit]

    async def health_check(self) -> bool:
        """Check the webhook still exists."""
        try:
            response = await self._client.get(self.webhook_url)
            return response.status_code == 200
        except httpx.HTTPError as e:
            log.warning("discord.health_check_failed", error=str(e))
            return False

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
