"""Token bucket stores.

Each check is one atomic refill-then-consume step:

    tokens = min(ceiling, tokens + elapsed * refill_rate)
    if tokens >= 1: tokens -= 1, persist tokens and now
    else: deny, state untouched

A bucket seen for the first time starts full. The Redis store runs the
step as a Lua script so that concurrent instances never read-then-write.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Protocol, Tuple

from redis import Redis, RedisError

from modules.dispatch.domain.errors import RateLimitStoreError


@dataclass(frozen=True)
class BucketResult:
    allowed: bool
    tokens: float
    refill_rate: float

    @property
    def remaining(self) -> int:
        return int(self.tokens)

    @property
    def retry_after_seconds(self) -> float:
        """Seconds until one token is available (0 when allowed)."""
        if self.allowed or self.refill_rate <= 0:
            return 0.0
        return max(0.0, (1 - self.tokens) / self.refill_rate)


def refill_and_consume(
    tokens: float,
    last_refill: float,
    ceiling: float,
    refill_rate: float,
    now: float,
) -> Tuple[bool, float]:
    """Pure token bucket step. Returns (allowed, tokens after the step)."""
    elapsed = max(0.0, now - last_refill)
    tokens = min(ceiling, tokens + elapsed * refill_rate)
    if tokens >= 1:
        return True, tokens - 1
    return False, tokens


class TokenBucketStore(Protocol):
    def try_consume(
        self,
        key: str,
        ceiling: int,
        refill_rate: float,
        ttl_seconds: int,
        now: float,
    ) -> BucketResult:
        """Atomically refill and take one token from the bucket at ``key``."""
        ...


class InMemoryTokenBucketStore:
    """Single-process bucket store guarded by a lock."""

    def __init__(self):
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._lock = threading.Lock()

    def try_consume(
        self,
        key: str,
        ceiling: int,
        refill_rate: float,
        ttl_seconds: int,
        now: float,
    ) -> BucketResult:
        with self._lock:
            tokens, last_refill = self._buckets.get(key, (float(ceiling), now))
            allowed, tokens = refill_and_consume(
                tokens, last_refill, ceiling, refill_rate, now
            )
            if allowed:
                self._buckets[key] = (tokens, now)
            return BucketResult(allowed=allowed, tokens=tokens, refill_rate=refill_rate)

    def peek(self, key: str) -> Tuple[float, float] | None:
        with self._lock:
            return self._buckets.get(key)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_TOKEN_BUCKET_SCRIPT = """
local ceiling = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local ttl = tonumber(ARGV[4])

local data = redis.call('HMGET', KEYS[1], 'tokens', 'last_refill')
local tokens = tonumber(data[1])
local last_refill = tonumber(data[2])
if tokens == nil or last_refill == nil then
    tokens = ceiling
    last_refill = now
end

local elapsed = math.max(0, now - last_refill)
tokens = math.min(ceiling, tokens + elapsed * rate)

if tokens >= 1 then
    tokens = tokens - 1
    redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'last_refill', tostring(now))
    redis.call('EXPIRE', KEYS[1], ttl)
    return {1, tostring(tokens)}
end
return {0, tostring(tokens)}
"""


class RedisTokenBucketStore:
    """Bucket store shared across instances, one Lua call per check."""

    def __init__(self, client: Redis):
        self._client = client
        self._script = client.register_script(_TOKEN_BUCKET_SCRIPT)

    def try_consume(
        self,
        key: str,
        ceiling: int,
        refill_rate: float,
        ttl_seconds: int,
        now: float,
    ) -> BucketResult:
        try:
            allowed, tokens = self._script(
                keys=[key], args=[ceiling, repr(refill_rate), repr(now), ttl_seconds]
            )
        except RedisError as e:
            raise RateLimitStoreError(str(e)) from e
        return BucketResult(
            allowed=int(allowed) == 1, tokens=float(tokens), refill_rate=refill_rate
        )
