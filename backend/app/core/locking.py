"""Per-project locking: serialize read-modify-write cycles on billing state.

This module provides:
- LocalLockManager: asyncio locks keyed by project, for single-process deployments
- RedisLockManager: SET NX locks with owner tokens, for multi-worker deployments
- get_lock_manager(): the configured singleton

Cross-project commands never contend. Acquisition is bounded by a timeout.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import UTC, datetime
from typing import Protocol

import redis.asyncio as redis
import structlog

from app.core.config import get_settings
from app.core.exceptions import LockTimeoutError
from app.db.redis import get_redis

logger = structlog.get_logger(__name__)


class ProjectLockManager(Protocol):
    """Exclusive access scoped to a project id."""

    def hold(self, project_id: str) -> AbstractAsyncContextManager[None]: ...


class LocalLockManager:
    """In-process locks, one asyncio.Lock per project id."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout if timeout is not None else get_settings().lock_timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncGenerator[None, None]:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        self._waiters[project_id] = self._waiters.get(project_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except TimeoutError:
                logger.warning("project_lock_timeout", project_id=project_id, backend="memory")
                raise LockTimeoutError(project_id, self.timeout) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[project_id] -= 1
            if self._waiters[project_id] == 0:
                # Drop idle locks so the registry does not grow with every project ever seen
                del self._waiters[project_id]
                self._locks.pop(project_id, None)


class RedisLockManager:
    """Distributed project locks using Redis."""

    LOCK_PREFIX = "billing:lock:project:"
    POLL_INTERVAL = 0.05

    def __init__(
        self,
        client: redis.Redis | None = None,
        timeout: float | None = None,
        ttl: int | None = None,
    ):
        settings = get_settings()
        self._client = client
        self.timeout = timeout if timeout is not None else settings.lock_timeout_seconds
        self.ttl = ttl or settings.lock_ttl_seconds

    def _get_redis(self) -> redis.Redis:
        return self._client if self._client is not None else get_redis()

    def _lock_key(self, project_id: str) -> str:
        return f"{self.LOCK_PREFIX}{project_id}"

    async def acquire(self, project_id: str, owner: str) -> bool:
        """Attempt to take the lock once.

        Returns:
            True if acquired, False if held by another owner
        """
        r = self._get_redis()
        lock_value = f"{owner}:{datetime.now(UTC).isoformat()}"
        result = await r.set(self._lock_key(project_id), lock_value, nx=True, ex=self.ttl)
        return bool(result)

    async def release(self, project_id: str, owner: str) -> bool:
        """Release the lock if this owner still holds it."""
        r = self._get_redis()
        key = self._lock_key(project_id)

        current = await r.get(key)
        if current and current.startswith(f"{owner}:"):
            await r.delete(key)
            return True

        logger.warning("project_lock_lost", project_id=project_id, owner=owner)
        return False

    async def is_locked(self, project_id: str) -> dict | None:
        """Lock info dict if locked, None otherwise."""
        r = self._get_redis()
        key = self._lock_key(project_id)

        current = await r.get(key)
        if not current:
            return None

        owner, _, locked_at = current.partition(":")
        return {
            "project_id": project_id,
            "owner": owner,
            "locked_at": locked_at or None,
            "expires_in": await r.ttl(key),
        }

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncGenerator[None, None]:
        owner = uuid.uuid4().hex
        deadline = time.monotonic() + self.timeout

        while not await self.acquire(project_id, owner):
            if time.monotonic() >= deadline:
                logger.warning("project_lock_timeout", project_id=project_id, backend="redis")
                raise LockTimeoutError(project_id, self.timeout)
            await asyncio.sleep(self.POLL_INTERVAL)

        try:
            yield
        finally:
            await self.release(project_id, owner)


_lock_manager: ProjectLockManager | None = None


def get_lock_manager() -> ProjectLockManager:
    """Get the singleton lock manager for the configured backend."""
    global _lock_manager
    if _lock_manager is None:
        if get_settings().lock_backend == "redis":
            _lock_manager = RedisLockManager()
        else:
            _lock_manager = LocalLockManager()
    return _lock_manager
