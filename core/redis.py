"""
Centralized Redis connection configuration and shared client.

The local session store and the ride event publisher both talk to the same
Redis instance; this module owns the URL lookup and the process-wide async
client they share.
"""

from __future__ import annotations

import logging
import os
from typing import Final

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL: Final[str] = "redis://redis:6379"
REDIS_URL_ENV_VAR: Final[str] = "REDIS_URL"


class _SharedRedis:
    client: aioredis.Redis | None = None


def get_redis_url() -> str:
    """
    Get the Redis URL from the environment.

    Returns:
        str: Redis URL suitable for connection (e.g., "redis://redis:6379")
    """
    redis_url = os.getenv(REDIS_URL_ENV_VAR, "").strip()
    if redis_url:
        return redis_url
    return DEFAULT_REDIS_URL


async def get_shared_redis() -> aioredis.Redis:
    """
    Return a process-wide shared async Redis client.

    The client is lazily created on first call and reused. Connection
    health is verified via ``ping()``; a lost connection is re-established.
    """
    if _SharedRedis.client is not None:
        try:
            await _SharedRedis.client.ping()
        except (RedisConnectionError, AttributeError, OSError):
            logger.warning("Shared Redis connection lost, reconnecting...")
            _SharedRedis.client = None
        else:
            return _SharedRedis.client

    _SharedRedis.client = aioredis.from_url(
        get_redis_url(),
        decode_responses=True,
        socket_connect_timeout=2,
    )
    await _SharedRedis.client.ping()
    logger.info("Shared Redis client connected")
    return _SharedRedis.client


async def close_shared_redis() -> None:
    """Close the shared Redis client (call during shutdown)."""
    if _SharedRedis.client is not None:
        await _SharedRedis.client.aclose()
        _SharedRedis.client = None
        logger.info("Shared Redis client closed")
