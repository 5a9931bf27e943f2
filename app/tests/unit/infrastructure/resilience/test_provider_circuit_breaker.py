"""Unit tests for the provider circuit breaker."""

import threading
from unittest.mock import MagicMock

import pytest

from infrastructure.resilience import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
    CircuitStateStoreError,
)


def trip(breaker, failures: int) -> None:
    for _ in range(failures):
        breaker.record_failure("PROVIDER_TIMEOUT")


@pytest.mark.unit
class TestClosedState:
    def test_starts_closed(self, breaker_factory):
        breaker = breaker_factory()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow_request()

    def test_rejects_invalid_threshold(self, breaker_factory):
        with pytest.raises(ValueError):
            breaker_factory(failure_threshold=0)

    def test_stays_closed_below_threshold(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 4)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.get_stats()["failure_count"] == 4

    def test_success_resets_failure_count(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 4)
        breaker.record_success()
        trip(breaker, 4)
        assert breaker.state == CircuitState.CLOSED


@pytest.mark.unit
class TestOpenState:
    def test_opens_after_five_consecutive_failures(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 5)
        assert breaker.state == CircuitState.OPEN

    def test_rejects_within_cooldown(self, breaker_factory, epoch_clock):
        breaker = breaker_factory()
        trip(breaker, 5)

        epoch_clock.advance(59)

        assert not breaker.allow_request()

    def test_failures_while_open_do_not_extend_cooldown(
        self, breaker_factory, epoch_clock
    ):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(30)
        trip(breaker, 3)
        epoch_clock.advance(30)

        assert breaker.allow_request()

    def test_call_raises_when_open(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 5)
        func = MagicMock()

        with pytest.raises(CircuitBreakerOpenError):
            breaker.call(func)

        func.assert_not_called()

    def test_state_is_shared_between_breakers_on_one_store(self, breaker_factory):
        first = breaker_factory("notify-sms")
        second = breaker_factory("notify-sms")
        trip(first, 5)
        assert not second.allow_request()

    def test_circuits_are_isolated_by_name(self, breaker_factory):
        trip(breaker_factory("notify-sms"), 5)
        assert breaker_factory("push-gateway").allow_request()


@pytest.mark.unit
class TestHalfOpenState:
    def test_first_caller_after_cooldown_is_the_trial(
        self, breaker_factory, epoch_clock
    ):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(60)

        assert breaker.allow_request()
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.allow_request()

    def test_exactly_one_trial_among_concurrent_callers(
        self, breaker_factory, epoch_clock
    ):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(61)

        callers = 50
        barrier = threading.Barrier(callers)
        allowed = []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            result = breaker.allow_request()
            with lock:
                allowed.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(callers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(allowed) == callers
        assert allowed.count(True) == 1

    def test_trial_success_closes(self, breaker_factory, epoch_clock):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(60)
        breaker.allow_request()

        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.get_stats()["failure_count"] == 0
        assert breaker.allow_request()

    def test_trial_failure_reopens_for_full_cooldown(
        self, breaker_factory, epoch_clock
    ):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(60)
        breaker.allow_request()

        breaker.record_failure("PROVIDER_ERROR")

        assert breaker.state == CircuitState.OPEN
        epoch_clock.advance(59)
        assert not breaker.allow_request()
        epoch_clock.advance(1)
        assert breaker.allow_request()

    def test_lost_trial_is_released_after_cooldown(self, breaker_factory, epoch_clock):
        breaker = breaker_factory()
        trip(breaker, 5)
        epoch_clock.advance(60)
        assert breaker.allow_request()

        epoch_clock.advance(60)

        assert breaker.allow_request()


@pytest.mark.unit
class TestCallAndAdmin:
    def test_call_records_success(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 2)
        assert breaker.call(lambda x: x * 2, 21) == 42
        assert breaker.get_stats()["failure_count"] == 0

    def test_call_records_failure_and_reraises(self, breaker_factory):
        breaker = breaker_factory(failure_threshold=1)

        def failing():
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError):
            breaker.call(failing)
        assert breaker.state == CircuitState.OPEN

    def test_reset_closes(self, breaker_factory):
        breaker = breaker_factory()
        trip(breaker, 5)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED


@pytest.mark.unit
class TestStoreUnavailable:
    def test_fails_open(self):
        store = MagicMock()
        store.get.side_effect = CircuitStateStoreError("redis down")
        breaker = CircuitBreaker("notify-sms", store=store)

        assert breaker.allow_request()
        breaker.record_failure("PROVIDER_ERROR")
        breaker.record_success()
