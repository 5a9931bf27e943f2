"""Redis integration: shared client used by buckets, circuit state and locks."""

from integrations.cache.client import (
    get_redis_client,
    health_check,
    make_key,
    reset_redis_client,
)

__all__ = ["get_redis_client", "health_check", "make_key", "reset_redis_client"]
