"""Redis client for distributed project locks.

Only initialized when LOCK_BACKEND=redis. Single-process deployments lock in
memory and never open a connection.
"""

import redis.asyncio as redis

from app.core.config import get_settings

_client: redis.Redis | None = None


def redis_enabled() -> bool:
    return get_settings().lock_backend == "redis"


async def init_redis(url: str | None = None) -> None:
    """Open the shared client and fail fast if Redis is unreachable."""
    global _client

    if _client is not None:
        return

    settings = get_settings()
    client = redis.from_url(
        url or settings.redis_url,
        decode_responses=True,  # lock values are compared as str
        socket_connect_timeout=settings.lock_timeout_seconds,
    )
    await client.ping()
    _client = client


async def close_redis() -> None:
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Return the shared Redis client.

    Raises RuntimeError if init_redis() has not been called.
    """
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client
