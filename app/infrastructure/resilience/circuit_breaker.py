"""Circuit breaker for provider resilience.

The circuit breaker stops calling a failing provider:
1. CLOSED: Normal operation, requests pass through
2. OPEN: Requests are rejected without calling the provider
3. HALF_OPEN: Exactly one trial request tests recovery

State transitions:
- CLOSED -> OPEN: After failure_threshold consecutive failures
- OPEN -> HALF_OPEN: First caller after the cooldown, who becomes the trial
- HALF_OPEN -> CLOSED: Trial succeeded
- HALF_OPEN -> OPEN: Trial failed

State lives in a CircuitStateStore and every transition is a compare-and-set,
so the breaker is safe to share between threads and, with the Redis store,
between instances.
"""

import time
from typing import Any, Callable, Optional

from infrastructure.logging import get_module_logger
from infrastructure.resilience.circuit_state import (
    CircuitSnapshot,
    CircuitState,
    CircuitStateStore,
    CircuitStateStoreError,
    InMemoryCircuitStateStore,
)

logger = get_module_logger()

# Upper bound on compare-and-set attempts for a single transition
MAX_CAS_ATTEMPTS = 16


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and request is rejected."""


class CircuitBreaker:
    """Circuit breaker for provider operations.

    Args:
        name: Name of the circuit (typically the provider instance name)
        store: Shared health state store (in-memory if omitted)
        failure_threshold: Consecutive failures before opening
        cooldown_seconds: Seconds an open circuit rejects calls
        clock: Epoch-seconds clock, injectable for tests
    """

    def __init__(
        self,
        name: str,
        store: Optional[CircuitStateStore] = None,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._store = store or InMemoryCircuitStateStore()
        self._clock = clock

    @property
    def state(self) -> CircuitState:
        """Current circuit state as stored (no transition is applied)."""
        return self._store.get(self.name).state

    def allow_request(self) -> bool:
        """Decide whether a request may reach the provider.

        Returns True while CLOSED. While OPEN, returns False until the
        cooldown elapses; the first caller afterwards wins the swap to
        HALF_OPEN and is the only one allowed through. A trial that never
        reports back is released after another cooldown.

        The breaker fails open: if the state store is unreachable the request
        is allowed and a warning is logged.
        """
        try:
            for _ in range(MAX_CAS_ATTEMPTS):
                snapshot = self._store.get(self.name)
                now = self._clock()

                if snapshot.state == CircuitState.CLOSED:
                    return True

                if not self._cooldown_elapsed(snapshot, now):
                    if snapshot.state == CircuitState.OPEN:
                        logger.debug(
                            "circuit_breaker_rejected",
                            name=self.name,
                            retry_in_seconds=int(
                                self.cooldown_seconds - (now - snapshot.opened_at)
                            ),
                        )
                    return False

                trial = snapshot.evolve(
                    state=CircuitState.HALF_OPEN,
                    opened_at=now,
                    trial_in_flight=True,
                )
                if self._store.compare_and_set(self.name, snapshot.version, trial):
                    logger.info("circuit_breaker_half_open", name=self.name)
                    return True
        except CircuitStateStoreError as e:
            logger.warning(
                "circuit_breaker_store_unavailable", name=self.name, error=str(e)
            )
            return True

        logger.warning("circuit_breaker_contention", name=self.name)
        return False

    def record_success(self) -> None:
        """Reset the failure count and close the circuit."""

        def transition(snapshot: CircuitSnapshot) -> Optional[CircuitSnapshot]:
            if snapshot.state == CircuitState.CLOSED and snapshot.failure_count == 0:
                return None
            return CircuitSnapshot(version=snapshot.version)

        previous = self._transition(transition)
        if previous is not None and previous.state != CircuitState.CLOSED:
            logger.info("circuit_breaker_closed", name=self.name)

    def record_failure(self, error: Optional[str] = None) -> None:
        """Count a failure, opening the circuit at the threshold.

        A failed HALF_OPEN trial reopens the circuit for another cooldown.
        """
        now = self._clock()

        def transition(snapshot: CircuitSnapshot) -> Optional[CircuitSnapshot]:
            count = snapshot.failure_count + 1
            if snapshot.state == CircuitState.HALF_OPEN:
                return snapshot.evolve(
                    state=CircuitState.OPEN,
                    failure_count=count,
                    opened_at=now,
                    trial_in_flight=False,
                )
            if snapshot.state == CircuitState.OPEN:
                return None
            if count >= self.failure_threshold:
                return snapshot.evolve(
                    state=CircuitState.OPEN, failure_count=count, opened_at=now
                )
            return snapshot.evolve(failure_count=count)

        previous = self._transition(transition)
        if previous is None:
            return
        if previous.state == CircuitState.HALF_OPEN:
            logger.warning("circuit_breaker_recovery_failed", name=self.name, error=error)
        elif previous.failure_count + 1 >= self.failure_threshold:
            logger.error(
                "circuit_breaker_opened",
                name=self.name,
                failure_count=previous.failure_count + 1,
                cooldown_seconds=self.cooldown_seconds,
                error=error,
            )
        else:
            logger.warning(
                "circuit_breaker_failure",
                name=self.name,
                failure_count=previous.failure_count + 1,
                threshold=self.failure_threshold,
                error=error,
            )

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute ``func`` through the breaker.

        Raises:
            CircuitBreakerOpenError: If the request is rejected
            Exception: Any exception raised by func (counted as a failure)
        """
        if not self.allow_request():
            raise CircuitBreakerOpenError(f"Circuit breaker '{self.name}' is open")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self.record_failure(str(e))
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        """Manually close the circuit (admin operations, tests)."""
        logger.info("circuit_breaker_manual_reset", name=self.name)
        self._store.delete(self.name)

    def get_stats(self) -> dict:
        snapshot = self._store.get(self.name)
        return {
            "name": self.name,
            "state": snapshot.state.value,
            "failure_count": snapshot.failure_count,
            "opened_at": snapshot.opened_at,
            "trial_in_flight": snapshot.trial_in_flight,
        }

    def _cooldown_elapsed(self, snapshot: CircuitSnapshot, now: float) -> bool:
        if snapshot.opened_at is None:
            return True
        return now - snapshot.opened_at >= self.cooldown_seconds

    def _transition(
        self, transition: Callable[[CircuitSnapshot], Optional[CircuitSnapshot]]
    ) -> Optional[CircuitSnapshot]:
        """Apply ``transition`` with compare-and-set retries.

        Returns the snapshot the transition was applied to, or None when no
        change was needed or the store could not be updated.
        """
        try:
            for _ in range(MAX_CAS_ATTEMPTS):
                snapshot = self._store.get(self.name)
                new = transition(snapshot)
                if new is None:
                    return None
                if self._store.compare_and_set(self.name, snapshot.version, new):
                    return snapshot
        except CircuitStateStoreError as e:
            logger.warning(
                "circuit_breaker_store_unavailable", name=self.name, error=str(e)
            )
            return None

        logger.warning("circuit_breaker_contention", name=self.name)
        return None
