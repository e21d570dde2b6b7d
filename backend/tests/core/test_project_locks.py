"""Tests for per-project locks (in-process and Redis-backed)."""

import asyncio

import pytest
from fakeredis import FakeAsyncRedis

from app.core.exceptions import LockTimeoutError
from app.core.locking import LocalLockManager, RedisLockManager

pytestmark = pytest.mark.unit


@pytest.fixture
def redis_client():
    return FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def redis_locks(redis_client):
    return RedisLockManager(client=redis_client, timeout=0.2, ttl=30)


async def test_local_lock_serializes_same_project():
    locks = LocalLockManager(timeout=1.0)
    order = []

    async def worker(name):
        async with locks.hold("p-1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


async def test_local_lock_projects_do_not_contend():
    locks = LocalLockManager(timeout=0.1)

    async with locks.hold("p-1"):
        async with locks.hold("p-2"):
            pass


async def test_local_lock_times_out():
    locks = LocalLockManager(timeout=0.05)

    async with locks.hold("p-1"):
        with pytest.raises(LockTimeoutError) as exc_info:
            async with locks.hold("p-1"):
                pass

    assert exc_info.value.key == "p-1"


async def test_local_lock_registry_drops_idle_locks():
    locks = LocalLockManager(timeout=1.0)

    async with locks.hold("p-1"):
        assert "p-1" in locks._locks

    assert locks._locks == {}
    assert locks._waiters == {}


async def test_local_lock_released_on_error():
    locks = LocalLockManager(timeout=0.1)

    with pytest.raises(RuntimeError):
        async with locks.hold("p-1"):
            raise RuntimeError("boom")

    async with locks.hold("p-1"):
        pass


async def test_redis_acquire_and_release(redis_locks, redis_client):
    assert await redis_locks.acquire("p-1", "owner-a") is True
    assert await redis_locks.acquire("p-1", "owner-b") is False

    info = await redis_locks.is_locked("p-1")
    assert info["owner"] == "owner-a"
    assert 0 < info["expires_in"] <= 30

    assert await redis_locks.release("p-1", "owner-b") is False
    assert await redis_locks.release("p-1", "owner-a") is True
    assert await redis_locks.is_locked("p-1") is None
    assert await redis_client.get("billing:lock:project:p-1") is None


async def test_redis_hold_times_out_when_held(redis_locks):
    await redis_locks.acquire("p-1", "someone-else")

    with pytest.raises(LockTimeoutError):
        async with redis_locks.hold("p-1"):
            pass


async def test_redis_hold_waits_for_release(redis_locks):
    await redis_locks.acquire("p-1", "owner-a")

    async def release_soon():
        await asyncio.sleep(0.05)
        await redis_locks.release("p-1", "owner-a")

    releaser = asyncio.create_task(release_soon())
    async with redis_locks.hold("p-1"):
        info = await redis_locks.is_locked("p-1")
        assert info["owner"] != "owner-a"
    await releaser

    assert await redis_locks.is_locked("p-1") is None
