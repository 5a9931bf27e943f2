"""Mutual exclusion for scheduled passes.

Every instance of the service runs the same scheduled jobs; a pass only runs
on the instance holding the job's lock. Locks are non-blocking: an instance
that cannot take the lock skips the pass. Each lock carries a TTL so a crashed
holder cannot block the job forever.
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Generator, Optional, Protocol

from redis import Redis, RedisError
from redis.lock import Lock as RedisLockHandle

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class DistributedLock(Protocol):
    def acquire(self) -> bool: ...

    def release(self) -> None: ...


class InMemoryLock:
    """Process-local lock with a TTL, keyed by name.

    Locks created with the same name share state, like the Redis lock does.
    """

    _expiries: Dict[str, float] = {}
    _guard = threading.Lock()

    def __init__(
        self,
        name: str,
        ttl_seconds: float = 120,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._held = False

    def acquire(self) -> bool:
        now = self._clock()
        with self._guard:
            expiry = self._expiries.get(self.name)
            if expiry is not None and expiry > now:
                return False
            self._expiries[self.name] = now + self.ttl_seconds
            self._held = True
            return True

    def release(self) -> None:
        with self._guard:
            if self._held:
                self._expiries.pop(self.name, None)
                self._held = False

    @classmethod
    def reset_all(cls) -> None:
        with cls._guard:
            cls._expiries.clear()


class RedisLock:
    """Lock shared by all instances through Redis."""

    def __init__(self, client: Redis, name: str, ttl_seconds: float = 120):
        self.name = name
        self._handle: RedisLockHandle = client.lock(
            name, timeout=ttl_seconds, blocking=False
        )

    def acquire(self) -> bool:
        try:
            return bool(self._handle.acquire(blocking=False))
        except RedisError as e:
            logger.error("lock_acquire_failed", lock=self.name, error=str(e))
            return False

    def release(self) -> None:
        try:
            self._handle.release()
        except RedisError as e:
            # the TTL frees the lock
            logger.warning("lock_release_failed", lock=self.name, error=str(e))


@contextmanager
def held(lock: DistributedLock) -> Generator[bool, None, None]:
    """Try the lock; yields whether this caller holds it.

    Usage:
        with held(lock) as acquired:
            if acquired:
                worker.process_batch()
    """
    acquired: Optional[bool] = lock.acquire()
    try:
        yield bool(acquired)
    finally:
        if acquired:
            lock.release()
