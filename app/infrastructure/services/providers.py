"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for core infrastructure services.
"""

from functools import lru_cache

from infrastructure.configuration import Settings
from infrastructure.events import EventBus, LoggingHandler, WILDCARD_EVENT
from infrastructure.resilience import (
    CircuitBreakerRegistry,
    CircuitStateStore,
    InMemoryCircuitStateStore,
    RedisCircuitStateStore,
)
from integrations.cache import get_redis_client, make_key


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process.

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


@lru_cache
def get_event_bus() -> EventBus:
    """
    Get application-scoped event bus.

    Every event is written to the structured log; the hub sink and the device
    registry subscribe on top of that.
    """
    bus = EventBus()
    bus.register(WILDCARD_EVENT, LoggingHandler())
    return bus


@lru_cache
def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    """
    Get application-scoped circuit breaker registry.

    Provider health is shared through Redis when the redis backend is
    selected, otherwise it is local to the process.
    """
    settings = get_settings()
    store: CircuitStateStore
    if settings.circuit_breaker.backend == "redis":
        store = RedisCircuitStateStore(
            get_redis_client(), key_prefix=make_key("circuit")
        )
    else:
        store = InMemoryCircuitStateStore()
    return CircuitBreakerRegistry(
        store=store,
        failure_threshold=settings.circuit_breaker.failure_threshold,
        cooldown_seconds=settings.circuit_breaker.cooldown_seconds,
    )
