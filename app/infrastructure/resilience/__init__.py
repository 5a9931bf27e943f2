"""Resilience patterns and implementations.

Circuit breaking with a shared atomic state store, and the claim-based retry
pickup worker.
"""

from infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
)
from infrastructure.resilience.circuit_state import (
    CircuitSnapshot,
    CircuitState,
    CircuitStateStore,
    CircuitStateStoreError,
    InMemoryCircuitStateStore,
    RedisCircuitStateStore,
)
from infrastructure.resilience.retry import (
    DueRecordSource,
    RetryBatchStats,
    RetryConfig,
    RetryProcessor,
    RetryResult,
    RetryWorker,
)
from infrastructure.resilience.service import CircuitBreakerRegistry

__all__ = [
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitBreakerRegistry",
    "CircuitSnapshot",
    "CircuitState",
    "CircuitStateStore",
    "CircuitStateStoreError",
    "InMemoryCircuitStateStore",
    "RedisCircuitStateStore",
    # Retry pickup
    "DueRecordSource",
    "RetryBatchStats",
    "RetryConfig",
    "RetryProcessor",
    "RetryResult",
    "RetryWorker",
]
