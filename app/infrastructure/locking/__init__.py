"""Distributed locking for scheduled passes."""

from infrastructure.locking.lock import (
    DistributedLock,
    InMemoryLock,
    RedisLock,
    held,
)

__all__ = ["DistributedLock", "InMemoryLock", "RedisLock", "held"]
