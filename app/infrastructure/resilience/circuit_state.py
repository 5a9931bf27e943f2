"""Provider health state stores for circuit breakers.

A circuit's state is a small immutable snapshot with a version number. All
transitions go through ``compare_and_set``: the write only lands if the
stored version still equals the version the caller read, so two callers
racing to flip OPEN -> HALF_OPEN cannot both win.

Two stores are provided:
- InMemoryCircuitStateStore: a dict guarded by a lock (single process)
- RedisCircuitStateStore: a hash per circuit, swapped by a Lua script
  (shared by every instance of the service)
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Protocol

from redis import Redis, RedisError

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests immediately
    HALF_OPEN = "half_open"  # One trial request allowed


@dataclass(frozen=True)
class CircuitSnapshot:
    """Provider health state at a given version.

    Attributes:
        state: Current circuit state
        failure_count: Consecutive failures observed
        opened_at: Epoch seconds the circuit opened, or the HALF_OPEN trial
            started
        trial_in_flight: A HALF_OPEN trial request has been handed out
        version: Incremented by the store on every successful swap
    """

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    opened_at: Optional[float] = None
    trial_in_flight: bool = False
    version: int = 0

    def evolve(self, **changes) -> "CircuitSnapshot":
        return replace(self, **changes)


class CircuitStateStoreError(Exception):
    """Raised when the backing store for circuit state is unreachable."""


class CircuitStateStore(Protocol):
    """Atomic get/transition interface over provider health state."""

    def get(self, name: str) -> CircuitSnapshot:
        """Return the current snapshot, CLOSED/version 0 if none is stored."""
        ...

    def compare_and_set(
        self, name: str, expected_version: int, new: CircuitSnapshot
    ) -> bool:
        """Store ``new`` (with version+1) only if the version is unchanged."""
        ...

    def delete(self, name: str) -> None: ...


class InMemoryCircuitStateStore:
    """Compare-and-set store for a single process."""

    def __init__(self):
        self._states: Dict[str, CircuitSnapshot] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitSnapshot:
        with self._lock:
            return self._states.get(name, CircuitSnapshot())

    def compare_and_set(
        self, name: str, expected_version: int, new: CircuitSnapshot
    ) -> bool:
        with self._lock:
            current = self._states.get(name, CircuitSnapshot())
            if current.version != expected_version:
                return False
            self._states[name] = new.evolve(version=expected_version + 1)
            return True

    def delete(self, name: str) -> None:
        with self._lock:
            self._states.pop(name, None)


_CAS_SCRIPT = """
local current = tonumber(redis.call('HGET', KEYS[1], 'version') or '0')
if current ~= tonumber(ARGV[1]) then
    return 0
end
redis.call('HSET', KEYS[1],
    'state', ARGV[2],
    'failure_count', ARGV[3],
    'opened_at', ARGV[4],
    'trial_in_flight', ARGV[5],
    'version', current + 1)
redis.call('EXPIRE', KEYS[1], ARGV[6])
return 1
"""


class RedisCircuitStateStore:
    """Compare-and-set store shared across instances through Redis.

    Args:
        client: Redis client created with ``decode_responses=True``
        key_prefix: Prefix of the per-circuit hash keys
        ttl_seconds: Expiry of idle circuit state
    """

    def __init__(
        self,
        client: Redis,
        key_prefix: str = "dispatch:circuit",
        ttl_seconds: int = 86400,
    ):
        self._client = client
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds
        self._cas = client.register_script(_CAS_SCRIPT)

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}:{name}"

    def get(self, name: str) -> CircuitSnapshot:
        try:
            raw = self._client.hgetall(self._key(name))
        except RedisError as e:
            raise CircuitStateStoreError(str(e)) from e
        if not raw:
            return CircuitSnapshot()
        opened_at = raw.get("opened_at")
        return CircuitSnapshot(
            state=CircuitState(raw.get("state", CircuitState.CLOSED.value)),
            failure_count=int(raw.get("failure_count", 0)),
            opened_at=float(opened_at) if opened_at else None,
            trial_in_flight=raw.get("trial_in_flight") == "1",
            version=int(raw.get("version", 0)),
        )

    def compare_and_set(
        self, name: str, expected_version: int, new: CircuitSnapshot
    ) -> bool:
        args = [
            expected_version,
            new.state.value,
            new.failure_count,
            "" if new.opened_at is None else repr(new.opened_at),
            "1" if new.trial_in_flight else "0",
            self._ttl_seconds,
        ]
        try:
            return bool(self._cas(keys=[self._key(name)], args=args))
        except RedisError as e:
            raise CircuitStateStoreError(str(e)) from e

    def delete(self, name: str) -> None:
        try:
            self._client.delete(self._key(name))
        except RedisError as e:
            raise CircuitStateStoreError(str(e)) from e
