"""Scheduled background passes of the dispatch engine.

Each pass runs under a lock so that only one instance of the service does
the work at a time: a due record must never be re-admitted twice
concurrently.
"""

import threading
import time
from typing import Callable

import schedule

from infrastructure.configuration import Settings
from infrastructure.locking import DistributedLock, InMemoryLock, RedisLock, held
from infrastructure.logging import get_module_logger
from integrations.cache import get_redis_client, make_key
from modules.dispatch import DispatchService

logger = get_module_logger()

RETRY_PICKUP_LOCK = "retry-pickup"
LANE_DRAIN_LOCK = "lane-drain"
BUDGET_MONITOR_LOCK = "budget-monitor"

LockFactory = Callable[[str], DistributedLock]


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "scheduled_job_failed",
                job=job.__name__,
                error=str(e),
                exc_info=True,
            )

    wrapper.__name__ = job.__name__
    return wrapper


def lock_factory(settings: Settings) -> LockFactory:
    """Redis locks when Redis is configured, process locks otherwise."""
    ttl = settings.retry.lock_ttl_seconds
    if settings.redis.enabled:
        client = get_redis_client()
        return lambda name: RedisLock(client, make_key("lock", name), ttl_seconds=ttl)
    return lambda name: InMemoryLock(name, ttl_seconds=ttl)


def pick_due_records(service: DispatchService, lock: DistributedLock) -> dict:
    with held(lock) as acquired:
        if not acquired:
            logger.debug("retry_pickup_skipped", reason="lock_held")
            return {}
        return service.retry_worker.process_batch()


def drain_lanes(service: DispatchService, lock: DistributedLock) -> int:
    """Deliver whatever is waiting in the lanes, for deployments without
    lane worker threads or to catch up after a backlog."""
    with held(lock) as acquired:
        if not acquired:
            logger.debug("lane_drain_skipped", reason="lock_held")
            return 0
        handled = service.lanes.drain(service.orchestrator.deliver)
        if handled:
            logger.info("lanes_drained", handled=handled, remaining=service.lanes.sizes())
        return handled


def monitor_budgets(service: DispatchService, lock: DistributedLock) -> None:
    with held(lock) as acquired:
        if not acquired:
            logger.debug("budget_monitor_skipped", reason="lock_held")
            return
        service.budget_monitor.run()


def provider_healthchecks(service: DispatchService) -> None:
    for channel, providers in service.providers.health_summary().items():
        for name, healthy in providers.items():
            if healthy:
                logger.info("provider_healthy", channel=channel, provider=name)
            else:
                logger.error("provider_unhealthy", channel=channel, provider=name)
    open_circuits = service.breakers.get_open_circuit_breakers()
    if open_circuits:
        logger.warning("circuit_breakers_open", names=open_circuits)


def init(service: DispatchService, settings: Settings) -> None:
    logger.info("scheduled_tasks_initialized")
    locks = lock_factory(settings)

    if settings.retry.enabled:
        schedule.every(settings.retry.pickup_interval_seconds).seconds.do(
            safe_run(pick_due_records), service, locks(RETRY_PICKUP_LOCK)
        )
        schedule.every(settings.retry.pickup_interval_seconds).seconds.do(
            safe_run(drain_lanes), service, locks(LANE_DRAIN_LOCK)
        )
    schedule.every(settings.budget.monitor_interval_minutes).minutes.do(
        safe_run(monitor_budgets), service, locks(BUDGET_MONITOR_LOCK)
    )
    schedule.every(5).minutes.do(safe_run(provider_healthchecks), service)


def run_continuously(interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Please note that it is
    *intended behavior that run_continuously() does not run
    missed jobs*. For example, if you've registered a job that
    should run every minute and you set a continuous run
    interval of one hour then your job won't be run 60 times
    at each interval but only once.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        @classmethod
        def run(cls):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread(daemon=True)
    continuous_thread.start()
    return cease_continuous_run
