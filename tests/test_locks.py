import asyncio
from datetime import date, time
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from campusconnect.exceptions import PersistenceError
from campusconnect.locks import SlotLocks, RedisSlotLocks, build_locks, slot_key, booking_key
from campusconnect.resources import HourlyRange, StayRange


class TestKeys:

    def test_hourly_key_is_per_day(self):
        key = slot_key("auditorium", HourlyRange(date(2024, 5, 1), time(9), time(10)))
        assert key == ("slot", "auditorium", "2024-05-01")

    def test_stay_key_covers_resource(self):
        assert slot_key("delegate", StayRange(date(2024, 5, 1), date(2024, 5, 3))) == ("slot", "delegate")

    def test_booking_key(self):
        assert booking_key("b-1") == ("booking", "b-1")


class TestSlotLocks:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = SlotLocks(timeout=5)
        inside = 0
        peak = 0

        async def worker():
            nonlocal inside, peak
            async with locks.hold("slot", "auditorium", "2024-05-01"):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(*[worker() for _ in range(5)])

        assert peak == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_run_together(self):
        locks = SlotLocks(timeout=5)
        both_inside = asyncio.Event()
        entered = []

        async def worker(day):
            async with locks.hold("slot", "auditorium", day):
                entered.append(day)
                if len(entered) == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1)

        await asyncio.gather(worker("2024-05-01"), worker("2024-05-02"))

        assert sorted(entered) == ["2024-05-01", "2024-05-02"]

    @pytest.mark.asyncio
    async def test_idle_locks_are_dropped(self):
        locks = SlotLocks(timeout=5)
        async with locks.hold("booking", "b-1"):
            assert len(locks) == 1
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = SlotLocks(timeout=5)
        with pytest.raises(RuntimeError):
            async with locks.hold("booking", "b-1"):
                raise RuntimeError("boom")

        async with locks.hold("booking", "b-1"):
            pass

    @pytest.mark.asyncio
    async def test_timeout_surfaces_as_persistence_error(self):
        locks = SlotLocks(timeout=0.01)
        held = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold("booking", "b-1"):
                held.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await held.wait()

        with pytest.raises(PersistenceError):
            async with locks.hold("booking", "b-1"):
                pass

        release.set()
        await task
        assert len(locks) == 0


def fake_redis(acquired=True, acquire_error=None, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired, side_effect=acquire_error)
    lock.release = AsyncMock(side_effect=release_error)
    client = MagicMock()
    client.lock = MagicMock(return_value=lock)
    return client, lock


class TestRedisSlotLocks:

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        client, lock = fake_redis()
        locks = RedisSlotLocks(client, timeout=2)

        async with locks.hold("slot", "library", "2024-05-01"):
            lock.release.assert_not_awaited()

        client.lock.assert_called_once_with(
            "campusconnect:lock:slot:library:2024-05-01", timeout=6, blocking_timeout=2
        )
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_acquired(self):
        client, _ = fake_redis(acquired=False)
        with pytest.raises(PersistenceError):
            async with RedisSlotLocks(client).hold("booking", "b-1"):
                pass

    @pytest.mark.asyncio
    async def test_backend_down(self):
        client, _ = fake_redis(acquire_error=RedisConnectionError("refused"))
        with pytest.raises(PersistenceError):
            async with RedisSlotLocks(client).hold("booking", "b-1"):
                pass

    @pytest.mark.asyncio
    async def test_release_failure_is_logged_not_raised(self):
        client, lock = fake_redis(release_error=LockError("lease expired"))
        async with RedisSlotLocks(client).hold("booking", "b-1"):
            pass
        lock.release.assert_awaited_once()


def test_build_locks_picks_backend():
    client, _ = fake_redis()
    assert isinstance(build_locks(client), RedisSlotLocks)
    assert isinstance(build_locks(None), SlotLocks)
