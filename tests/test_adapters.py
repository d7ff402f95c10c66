"""Tests for notification sink adapters."""
import pytest
import httpx
import orjson
from datetime import datetime
from unittest.mock import AsyncMock, patch
from redis.exceptions import RedisError
from valheim_watcher.adapters.memory import InMemoryAdapter
from valheim_watcher.adapters.redis_stream import RedisStreamAdapter
from valheim_watcher.adapters.discord_webhook import DiscordWebhookAdapter
from valheim_watcher.adapters.messages import render_message
from valheim_watcher.config import Settings
from valheim_watcher.event_models import (
    CharacterDied,
    PeerDeparted,
    PeerPaired,
    PeerRejectedNotice,
    ServerStatus,
    WorldSaved,
)
from valheim_watcher.services.notification_bus import NotificationBus, create_adapter


@pytest.mark.asyncio
async def test_memory_adapter_deliver_and_list():
    adapter = InMemoryAdapter()

    for i in range(5):
        await adapter.deliver(PeerPaired(peer_id=i, character_name=f"viking-{i}"))

    recent = list(await adapter.list_recent(limit=3))

    assert len(recent) == 3
    # Newest first
    assert [n.peer_id for n in recent] == [4, 3, 2]


@pytest.mark.asyncio
async def test_memory_adapter_is_bounded():
    adapter = InMemoryAdapter(max_size=2)
    for i in range(5):
        await adapter.deliver(PeerRejectedNotice(peer_id=i))

    assert [n.peer_id for n in await adapter.list_recent()] == [4, 3]


@pytest.mark.asyncio
async def test_memory_adapter_health_check():
    assert await InMemoryAdapter().health_check() is True


@pytest.mark.asyncio
async def test_redis_adapter_deliver_with_mock():
    """Test Redis adapter deliver with mocked Redis."""
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis
        mock_redis.xadd.return_value = b"1234567890-0"

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        await adapter.deliver(PeerPaired(peer_id=76561199036446150, character_name="Bjorn"))

        assert mock_redis.xadd.called
        call_args = mock_redis.xadd.call_args
        assert call_args[0][0] == "valheim-watcher:notifications"

        fields = call_args[0][1]
        assert fields["kind"] == "peer_paired"
        parsed = orjson.loads(fields["data"])
        assert parsed["peer_id"] == 76561199036446150
        assert parsed["character_name"] == "Bjorn"


@pytest.mark.asyncio
async def test_redis_adapter_deliver_failure_raises():
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis
        mock_redis.xadd.side_effect = RedisError("connection refused")

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        with pytest.raises(RedisError):
            await adapter.deliver(PeerRejectedNotice(peer_id=1))


@pytest.mark.asyncio
async def test_redis_adapter_list_recent_with_mock():
    """Test Redis adapter list recent with mocked Redis."""
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis

        died = CharacterDied(character_name="Bjorn", peer_id=1)
        saved = WorldSaved(duration_ms=12.5, timestamp=datetime(2021, 3, 11, 19, 50))
        mock_redis.xrevrange.return_value = [
            (b"1234567891-0", {b"data": orjson.dumps(saved.model_dump())}),
            (b"1234567890-0", {b"data": orjson.dumps(died.model_dump())}),
            (b"1234567889-0", {b"data": b"not json"}),
        ]

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        recent = list(await adapter.list_recent(limit=3))

        assert recent == [saved, died]
        mock_redis.xrevrange.assert_called_once_with("valheim-watcher:notifications", count=3)


@pytest.mark.asyncio
async def test_redis_adapter_list_recent_on_error():
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis
        mock_redis.xrevrange.side_effect = RedisError("timeout")

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        assert list(await adapter.list_recent()) == []


@pytest.mark.asyncio
async def test_redis_adapter_health_check_failure():
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis
        mock_redis.ping.side_effect = Exception("Connection refused")

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        assert await adapter.health_check() is False


@pytest.mark.asyncio
async def test_discord_adapter_posts_rendered_message():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = DiscordWebhookAdapter("https://discord.test/api/webhooks/1/abc", client=client)

    notification = PeerPaired(peer_id=76561199036446150, character_name="Bjorn")
    await adapter.deliver(notification)

    assert len(requests) == 1
    body = orjson.loads(requests[0].content)
    assert body["content"] == "Bjorn has connected.\nhttps://steamcommunity.com/profiles/76561199036446150"
    assert list(await adapter.list_recent()) == [notification]
    await adapter.close()


@pytest.mark.asyncio
async def test_discord_adapter_skips_world_saves():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    adapter = DiscordWebhookAdapter("https://discord.test/api/webhooks/1/abc", client=client)

    await adapter.deliver(WorldSaved(duration_ms=10.0, timestamp=datetime(2021, 3, 11)))

    assert requests == []
    assert len(list(await adapter.list_recent())) == 1
    await adapter.close()


@pytest.mark.asyncio
async def test_discord_adapter_error_raises():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(429)))
    adapter = DiscordWebhookAdapter("https://discord.test/api/webhooks/1/abc", client=client)

    with pytest.raises(httpx.HTTPStatusError):
        await adapter.deliver(PeerRejectedNotice(peer_id=1))
    assert list(await adapter.list_recent()) == []
    await adapter.close()


def test_render_messages():
    assert render_message(PeerDeparted(peer_id=1, character_name="Bjorn")) == (
        "Bjorn has disconnected.\nhttps://steamcommunity.com/profiles/1"
    )
    assert render_message(PeerRejectedNotice(peer_id=2)) == (
        "A user gave the wrong password.\nhttps://steamcommunity.com/profiles/2"
    )
    assert render_message(CharacterDied(character_name="Bjorn")) == "Bjorn died an uneventful death. GGWP"
    assert render_message(ServerStatus(status="started")) == "Valheim server started"
    assert render_message(ServerStatus(status="stopping")) == "Valheim server shutting down"


def test_create_adapter_defaults_to_memory():
    adapter = create_adapter(Settings(SINK_ADAPTER="memory"))
    assert isinstance(adapter, InMemoryAdapter)


def test_create_adapter_falls_back_without_url():
    assert isinstance(create_adapter(Settings(SINK_ADAPTER="redis", REDIS_URL=None)), InMemoryAdapter)
    assert isinstance(create_adapter(Settings(SINK_ADAPTER="discord", DISCORD_WEBHOOK_URL=None)), InMemoryAdapter)


def test_create_adapter_redis():
    adapter = create_adapter(Settings(SINK_ADAPTER="redis", REDIS_URL="redis://localhost:6379/0"))
    assert isinstance(adapter, RedisStreamAdapter)


@pytest.mark.asyncio
async def test_bus_swallows_delivery_failure():
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis
        mock_redis.xadd.side_effect = RedisError("down")

        bus = NotificationBus(adapter=RedisStreamAdapter(redis_url="redis://localhost:6379"))
        assert await bus.publish(PeerRejectedNotice(peer_id=1)) is False


@pytest.mark.asyncio
async def test_bus_with_custom_adapter():
    adapter = InMemoryAdapter()
    bus = NotificationBus(adapter=adapter)

    assert await bus.publish(PeerRejectedNotice(peer_id=1)) is True
    assert len(list(await bus.list_recent())) == 1
    assert bus.adapter_name == "InMemoryAdapter"


@pytest.mark.asyncio
async def test_redis_adapter_close():
    with patch("valheim_watcher.adapters.redis_stream.Redis") as mock_redis_class:
        mock_redis = AsyncMock()
        mock_redis_class.from_url.return_value = mock_redis

        adapter = RedisStreamAdapter(redis_url="redis://localhost:6379")
        await adapter.health_check()
        await adapter.close()

        mock_redis.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_bus_close_releases_sink_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
    bus = NotificationBus(adapter=DiscordWebhookAdapter("https://discord.test/api/webhooks/1/abc", client=client))

    await bus.close()

    assert client.is_closed


@pytest.mark.asyncio
async def test_bus_close_with_memory_adapter():
    bus = NotificationBus(adapter=InMemoryAdapter())
    await bus.close()
    assert await bus.health_check() is True
