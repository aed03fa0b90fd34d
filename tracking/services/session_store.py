"""Local persistence of the active ride session identity.

Only the identity (session id, start time, lifecycle state) is kept here.
Metrics and route are never trusted from local state: on restart they are
rebuilt from the remote ride authority's record.
"""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import ConnectionError as RedisConnectionError

from core.redis import get_redis_url
from tracking.models import LocalSessionRecord

logger = logging.getLogger(__name__)

ACTIVE_SESSION_TTL_SECONDS = 24 * 60 * 60
_ACTIVE_SESSION_KEY = "tracking:ride:active_session"


class SessionStore(Protocol):
    async def save(self, record: LocalSessionRecord) -> None: ...

    async def load(self) -> LocalSessionRecord | None: ...

    async def clear(self) -> None: ...


class InMemorySessionStore:
    """Process-local store; state does not survive a restart of the process."""

    def __init__(self, record: LocalSessionRecord | None = None) -> None:
        self.record = record

    async def save(self, record: LocalSessionRecord) -> None:
        self.record = record

    async def load(self) -> LocalSessionRecord | None:
        return self.record

    async def clear(self) -> None:
        self.record = None


class RedisSessionStore:
    """Redis-backed store keyed by a single active-session pointer."""

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        key: str = _ACTIVE_SESSION_KEY,
        ttl_seconds: int = ACTIVE_SESSION_TTL_SECONDS,
    ) -> None:
        self._redis_url = redis_url
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._client: aioredis.Redis | None = None

    async def _get_client(self) -> aioredis.Redis:
        if self._client is not None:
            try:
                await self._client.ping()
            except (RedisConnectionError, AttributeError):
                logger.warning("Session store Redis connection lost, reconnecting...")
                self._client = None
            else:
                return self._client

        self._client = aioredis.from_url(
            self._redis_url or get_redis_url(),
            decode_responses=True,
        )
        await self._client.ping()
        return self._client

    async def save(self, record: LocalSessionRecord) -> None:
        client = await self._get_client()
        await client.set(self._key, record.model_dump_json(), ex=self._ttl_seconds)

    async def load(self) -> LocalSessionRecord | None:
        client = await self._get_client()
        raw = await client.get(self._key)
        if not raw:
            return None

        try:
            return LocalSessionRecord.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Invalid local session record; deleting key %s", self._key)
            await client.delete(self._key)
            return None

    async def clear(self) -> None:
        client = await self._get_client()
        await client.delete(self._key)


__all__ = [
    "ACTIVE_SESSION_TTL_SECONDS",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
]
