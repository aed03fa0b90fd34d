from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from core import redis as core_redis


class _FakeRedisClient:
    def __init__(self) -> None:
        self.ping_calls = 0
        self.closed = False
        self.broken = False

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.broken:
            msg = "gone"
            raise RedisConnectionError(msg)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_shared_redis() -> None:
    core_redis._SharedRedis.client = None
    yield
    core_redis._SharedRedis.client = None


def test_get_redis_url_defaults_and_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert core_redis.get_redis_url() == "redis://redis:6379"

    monkeypatch.setenv("REDIS_URL", " redis://cache:6380/2 ")
    assert core_redis.get_redis_url() == "redis://cache:6380/2"


@pytest.mark.asyncio
async def test_shared_client_is_reused_then_reconnected(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first, second = _FakeRedisClient(), _FakeRedisClient()
    from_url = MagicMock(side_effect=[first, second])
    monkeypatch.setattr(core_redis.aioredis, "from_url", from_url)

    assert await core_redis.get_shared_redis() is first
    assert await core_redis.get_shared_redis() is first
    first.broken = True
    assert await core_redis.get_shared_redis() is second

    assert from_url.call_count == 2
    from_url.assert_called_with(
        "redis://redis:6379",
        decode_responses=True,
        socket_connect_timeout=2,
    )


@pytest.mark.asyncio
async def test_close_shared_redis(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeRedisClient()
    monkeypatch.setattr(core_redis.aioredis, "from_url", MagicMock(return_value=client))
    await core_redis.get_shared_redis()

    await core_redis.close_shared_redis()

    assert client.closed
    assert core_redis._SharedRedis.client is None
