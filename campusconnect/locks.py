"""
Keyed mutual exclusion for check-then-insert and status transitions.

Keys used by the booking service:
  ("slot", resource_id, day)   hourly venue on one day
  ("slot", resource_id)        span venue, the whole resource
  ("booking", booking_id)      status transitions of one booking
"""
import asyncio
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from .config import LOCK_TIMEOUT_SECONDS
from .exceptions import PersistenceError
from .logging_config import get_logger
from .resources import StayRange

logger = get_logger(__name__)


def slot_key(resource_id: str, candidate) -> tuple:
    if isinstance(candidate, StayRange):
        return ("slot", resource_id)
    return ("slot", resource_id, candidate.day.isoformat())


def booking_key(booking_id: str) -> tuple:
    return ("booking", booking_id)


class SlotLocks:
    """In-process locks, enough for a single worker."""

    def __init__(self, timeout: float = LOCK_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._locks: dict[tuple, asyncio.Lock] = {}
        self._holders: dict[tuple, int] = {}

    @asynccontextmanager
    async def hold(self, *key):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("lock_timeout", key=key, timeout=self.timeout)
                raise PersistenceError("Timed out waiting for booking lock; retry")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                self._locks.pop(key, None)

    def __len__(self):
        return len(self._locks)


class RedisSlotLocks:
    """Locks shared by every worker talking to the same redis."""

    def __init__(self, client, timeout: float = LOCK_TIMEOUT_SECONDS, prefix: str = "campusconnect:lock"):
        self.client = client
        self.timeout = timeout
        self.prefix = prefix

    def _name(self, key: tuple) -> str:
        return ":".join([self.prefix, *[str(k) for k in key]])

    @asynccontextmanager
    async def hold(self, *key):
        name = self._name(key)
        # lease outlives the wait so a slow holder is not preempted mid-write
        lock = self.client.lock(name, timeout=self.timeout * 3, blocking_timeout=self.timeout)
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error("lock_backend_unavailable", key=name, error=str(e))
            raise PersistenceError("Lock service unavailable; retry") from e
        if not acquired:
            logger.warning("lock_timeout", key=name, timeout=self.timeout)
            raise PersistenceError("Timed out waiting for booking lock; retry")
        try:
            yield
        finally:
            try:
                await lock.release()
            except (LockError, RedisError) as e:
                logger.warning("lock_release_failed", key=name, error=str(e))


def build_locks(client=None):
    if client is not None:
        return RedisSlotLocks(client)
    return SlotLocks()
