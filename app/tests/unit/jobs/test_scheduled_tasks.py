from unittest.mock import MagicMock, call, patch

import pytest

from infrastructure.configuration import RetrySettings, Settings
from infrastructure.configuration.integrations import RedisSettings
from infrastructure.locking import InMemoryLock, RedisLock
from jobs import scheduled_tasks


@pytest.fixture(autouse=True)
def _reset_locks():
    InMemoryLock.reset_all()
    yield
    InMemoryLock.reset_all()


@pytest.fixture
def service():
    service = MagicMock()
    service.retry_worker.process_batch.return_value = {"processed": 2}
    service.lanes.drain.return_value = 3
    return service


@pytest.fixture
def settings():
    return Settings(redis=RedisSettings(REDIS_URL=""))


@patch("jobs.scheduled_tasks.schedule")
def test_init(schedule_mock, service, settings):
    scheduled_tasks.init(service, settings)

    schedule_mock.every.assert_has_calls(
        calls=[
            call(settings.retry.pickup_interval_seconds),
            call(settings.retry.pickup_interval_seconds),
            call(settings.budget.monitor_interval_minutes),
            call(5),
        ],
        any_order=True,
    )
    do_calls = [c for c in schedule_mock.mock_calls if ".do(" in str(c)]
    assert len(do_calls) == 4


@patch("jobs.scheduled_tasks.schedule")
def test_init_without_retry_pickup(schedule_mock, service):
    settings = Settings(
        redis=RedisSettings(REDIS_URL=""), retry=RetrySettings(RETRY_ENABLED=False)
    )

    scheduled_tasks.init(service, settings)

    do_calls = [c for c in schedule_mock.mock_calls if ".do(" in str(c)]
    assert len(do_calls) == 2


@patch("jobs.scheduled_tasks.logger")
def test_safe_run(mock_logger):
    def failing_job():
        raise RuntimeError("Test exception")

    wrapper = scheduled_tasks.safe_run(failing_job)
    wrapper()

    mock_logger.error.assert_called_once_with(
        "scheduled_job_failed",
        job="failing_job",
        error="Test exception",
        exc_info=True,
    )
    assert wrapper.__name__ == "failing_job"


def test_lock_factory_in_memory(settings):
    locks = scheduled_tasks.lock_factory(settings)
    assert isinstance(locks("retry-pickup"), InMemoryLock)


@patch("jobs.scheduled_tasks.get_redis_client")
def test_lock_factory_redis(get_redis_client_mock):
    settings = Settings(redis=RedisSettings(REDIS_URL="redis://localhost:6379/0"))

    lock = scheduled_tasks.lock_factory(settings)("retry-pickup")

    assert isinstance(lock, RedisLock)
    get_redis_client_mock.return_value.lock.assert_called_once()


def test_pick_due_records(service):
    stats = scheduled_tasks.pick_due_records(service, InMemoryLock("retry-pickup"))
    assert stats == {"processed": 2}
    service.retry_worker.process_batch.assert_called_once()


def test_pick_due_records_skipped_when_lock_held(service):
    holder = InMemoryLock("retry-pickup")
    assert holder.acquire()

    stats = scheduled_tasks.pick_due_records(service, InMemoryLock("retry-pickup"))

    assert stats == {}
    service.retry_worker.process_batch.assert_not_called()


def test_lock_is_released_after_pass(service):
    lock = InMemoryLock("retry-pickup")
    scheduled_tasks.pick_due_records(service, lock)
    scheduled_tasks.pick_due_records(service, lock)
    assert service.retry_worker.process_batch.call_count == 2


def test_drain_lanes(service):
    handled = scheduled_tasks.drain_lanes(service, InMemoryLock("lane-drain"))
    assert handled == 3
    service.lanes.drain.assert_called_once_with(service.orchestrator.deliver)


def test_monitor_budgets(service):
    scheduled_tasks.monitor_budgets(service, InMemoryLock("budget-monitor"))
    service.budget_monitor.run.assert_called_once_with()


@patch("jobs.scheduled_tasks.logger")
def test_provider_healthchecks_healthy(mock_logger, service):
    service.providers.health_summary.return_value = {
        "sms": {"notify-sms": True},
        "push": {"push-gateway": True},
    }
    service.breakers.get_open_circuit_breakers.return_value = []

    scheduled_tasks.provider_healthchecks(service)

    assert mock_logger.info.call_count == 2
    assert mock_logger.error.call_count == 0
    assert mock_logger.warning.call_count == 0


@patch("jobs.scheduled_tasks.logger")
def test_provider_healthchecks_unhealthy(mock_logger, service):
    service.providers.health_summary.return_value = {
        "sms": {"notify-sms": False, "backup-sms": True},
    }
    service.breakers.get_open_circuit_breakers.return_value = ["notify-sms"]

    scheduled_tasks.provider_healthchecks(service)

    mock_logger.error.assert_called_once_with(
        "provider_unhealthy", channel="sms", provider="notify-sms"
    )
    mock_logger.warning.assert_called_once_with(
        "circuit_breakers_open", names=["notify-sms"]
    )


@patch("jobs.scheduled_tasks.schedule")
@patch("jobs.scheduled_tasks.threading")
@patch("jobs.scheduled_tasks.time")
def test_run_continuously(_time_mock, threading_mock, _schedule_mock):
    cease_continuous_run = MagicMock()
    cease_continuous_run.is_set.return_value = True
    threading_mock.Event.return_value = cease_continuous_run
    result = scheduled_tasks.run_continuously(interval=1)
    assert result == cease_continuous_run
