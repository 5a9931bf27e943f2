"""Circuit breaker infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class CircuitBreakerSettings(InfrastructureSettings):
    """Provider circuit breaker configuration.

    Environment Variables:
        CIRCUIT_BREAKER_FAILURE_THRESHOLD: Consecutive failures that open a circuit
        CIRCUIT_BREAKER_COOLDOWN_SECONDS: Time an open circuit rejects calls
        CIRCUIT_BREAKER_BACKEND: Health state store, 'memory' or 'redis'
    """

    failure_threshold: int = Field(default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD")
    cooldown_seconds: int = Field(default=60, alias="CIRCUIT_BREAKER_COOLDOWN_SECONDS")
    backend: str = Field(default="memory", alias="CIRCUIT_BREAKER_BACKEND")
