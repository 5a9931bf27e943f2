"""Circuit breaker registry.

Holds one breaker per provider instance, all sharing the same health state
store and thresholds. The registry is built once at startup and passed to
the provider gateways; nothing looks breakers up through module globals.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

import structlog

from infrastructure.resilience.circuit_breaker import CircuitBreaker
from infrastructure.resilience.circuit_state import (
    CircuitState,
    CircuitStateStore,
    InMemoryCircuitStateStore,
)

logger = structlog.get_logger()


class CircuitBreakerRegistry:
    """Creates and tracks circuit breakers.

    Usage:
        registry = CircuitBreakerRegistry(store=RedisCircuitStateStore(client))
        breaker = registry.get_or_create("notify-sms")
        if breaker.allow_request():
            ...
    """

    def __init__(
        self,
        store: Optional[CircuitStateStore] = None,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store or InMemoryCircuitStateStore()
        self._failure_threshold = failure_threshold
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get_or_create(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name=name,
                    store=self._store,
                    failure_threshold=self._failure_threshold,
                    cooldown_seconds=self._cooldown_seconds,
                    clock=self._clock,
                )
                self._breakers[name] = breaker
                logger.info(
                    "circuit_breaker_created",
                    name=name,
                    failure_threshold=self._failure_threshold,
                    cooldown_seconds=self._cooldown_seconds,
                )
            return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        return self._breakers.get(name)

    def names(self) -> List[str]:
        return list(self._breakers)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: cb.get_stats() for name, cb in list(self._breakers.items())}

    def get_open_circuit_breakers(self) -> List[str]:
        """Names of circuits currently OPEN or probing in HALF_OPEN."""
        return [
            name
            for name, cb in list(self._breakers.items())
            if cb.state != CircuitState.CLOSED
        ]

    def reset(self, name: str) -> None:
        """Manually reset a circuit breaker.

        Raises:
            KeyError: If circuit breaker not found
        """
        cb = self._breakers.get(name)
        if not cb:
            raise KeyError(f"Circuit breaker '{name}' not found")
        cb.reset()
