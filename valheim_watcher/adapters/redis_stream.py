"""Redis Streams notification sink."""
from typing import Iterable
import structlog
import orjson
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from .base import SinkAdapter
from ..event_models import Notification, notification_adapter
from ..config import get_settings

log = structlog.get_logger()


class RedisStreamAdapter(SinkAdapter):
    """Redis Streams implementation of the notification sink.

    Notifications are appended to a capped Redis stream so other services
    (chat bots, dashboards) can consume them.
    """

    def __init__(self, redis_url: str | None = None, stream_key: str = "valheim-watcher:notifications",
                 maxlen: int = 10000):
        """
        Initialize Redis stream adapter.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            stream_key: Stream the notifications are appended to
            maxlen: Approximate cap on stream length
        """
        self.redis_url = redis_url or str(get_settings().REDIS_URL)
        self._client: Redis | None = None
        self._stream_key = stream_key
        self._maxlen = maxlen

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5
            )
        return self._client

    async def deliver(self, notification: Notification) -> None:
        """
        Append notification to the Redis stream.

        Raises:
            RedisError: If unable to write to Redis
        """
        try:
            client = self._get_client()
            await client.xadd(
                self._stream_key,
                {"kind": notification.kind, "data": orjson.dumps(notification.model_dump())},
                id="*",
                maxlen=self._maxlen
            )
            log.info(
                "notification.delivered",
                id=notification.id,
                kind=notification.kind,
                adapter="redis_stream"
            )
        except RedisError as e:
            log.error("redis.deliver_failed", error=str(e), notification_id=notification.id)
            raise

    async def list_recent(self, limit: int = 50) -> Iterable[Notification]:
        """
        List recent notifications from the Redis stream.

        Returns:
            Notifications newest first; empty when Redis is unreachable
        """
        try:
            client = self._get_client()
            entries = await client.xrevrange(self._stream_key, count=limit)

            notifications = []
            for entry_id, entry_data in entries:
                if b"data" not in entry_data:
                    continue
                try:
                    notifications.append(notification_adapter.validate_python(orjson.loads(entry_data[b"data"])))
                except (orjson.JSONDecodeError, ValidationError) as e:
                    log.warning("redis.entry_invalid", entry_id=entry_id, error=str(e))

            return notifications

        except RedisError as e:
            log.error("redis.list_failed", error=str(e))
            return []

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            client = self._get_client()
            return await client.ping()
        except Exception as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
