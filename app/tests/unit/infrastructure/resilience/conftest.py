"""Shared fixtures for resilience tests."""

import pytest

from infrastructure.resilience import CircuitBreaker, InMemoryCircuitStateStore


class EpochClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def epoch_clock():
    return EpochClock()


@pytest.fixture
def circuit_store():
    return InMemoryCircuitStateStore()


@pytest.fixture
def breaker_factory(circuit_store, epoch_clock):
    """Factory for breakers sharing one store and clock."""

    def _factory(
        name: str = "notify-sms",
        failure_threshold: int = 5,
        cooldown_seconds: float = 60,
    ) -> CircuitBreaker:
        return CircuitBreaker(
            name,
            store=circuit_store,
            failure_threshold=failure_threshold,
            cooldown_seconds=cooldown_seconds,
            clock=epoch_clock,
        )

    return _factory
