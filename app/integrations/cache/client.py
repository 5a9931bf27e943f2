"""Redis client for shared dispatch state.

Token buckets, provider circuit state and the scheduler lock are shared by
every instance of the service, so they live in Redis. This module owns the
connection pool; the stores built on top of it issue their own commands
(mostly Lua scripts, so that each mutation is a single round-trip).

Usage:
    from integrations.cache import get_redis_client, make_key

    client = get_redis_client()
    client.hget(make_key("circuit", "notify-sms"), "state")
"""

from typing import Optional

from redis import ConnectionPool, Redis, RedisError
from redis.exceptions import ConnectionError, TimeoutError

from infrastructure.configuration.settings import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations.result import OperationResult

logger = get_module_logger()

_connection_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """Get or create the Redis client backed by a shared connection pool.

    Raises:
        ValueError: If REDIS_URL is not configured.
        ConnectionError: If Redis cannot be reached on first use.
    """
    global _connection_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    if not settings.redis.enabled:
        raise ValueError("REDIS_URL is not configured")

    try:
        if _connection_pool is None:
            _connection_pool = ConnectionPool.from_url(
                settings.redis.REDIS_URL,
                decode_responses=True,
                max_connections=50,
                socket_timeout=settings.redis.REDIS_SOCKET_TIMEOUT_SECONDS,
                socket_connect_timeout=settings.redis.REDIS_SOCKET_TIMEOUT_SECONDS,
                health_check_interval=30,
            )
            logger.info("redis_connection_pool_created")

        client = Redis(connection_pool=_connection_pool)
        client.ping()
        _redis_client = client
        logger.info("redis_client_connected")
        return client

    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.error("redis_connection_failed", error=str(e))
        raise


def reset_redis_client() -> None:
    """Drop the cached client and pool (tests, reconnect after failover)."""
    global _connection_pool, _redis_client
    if _connection_pool is not None:
        _connection_pool.disconnect()
    _connection_pool = None
    _redis_client = None


def make_key(*parts: object) -> str:
    """Build a namespaced key, e.g. ``dispatch:circuit:notify-sms``."""
    return ":".join([settings.redis.REDIS_KEY_PREFIX, *(str(p) for p in parts)])


def health_check() -> OperationResult:
    """Check Redis connection health."""
    try:
        get_redis_client().ping()
        return OperationResult.success(message="Redis connection healthy")
    except (ConnectionError, TimeoutError) as e:
        logger.error("redis_health_check_connection_error", error=str(e))
        return OperationResult.transient_error(
            message=f"Redis connection error: {e}",
            error_code="CONNECTION_ERROR",
        )
    except (RedisError, ValueError) as e:
        logger.error("redis_health_check_error", error=str(e))
        return OperationResult.permanent_error(
            message=f"Redis error: {e}",
            error_code="REDIS_ERROR",
        )
