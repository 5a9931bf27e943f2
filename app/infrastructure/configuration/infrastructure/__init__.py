"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.configuration.infrastructure.circuit_breaker import (
    CircuitBreakerSettings,
)

__all__ = [
    "RetrySettings",
    "CircuitBreakerSettings",
]
