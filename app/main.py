"""Process entry point for the notification dispatch engine."""

import signal
import threading

from dotenv import load_dotenv

from infrastructure.logging import configure_logging, get_module_logger
from infrastructure.services import (
    get_circuit_breaker_registry,
    get_event_bus,
    get_settings,
)
from jobs import scheduled_tasks
from modules.dispatch import build_dispatch_service

load_dotenv()
logger = get_module_logger()


def main():
    """Start lane workers and the scheduled passes, then wait for a signal."""
    settings = get_settings()
    configure_logging(log_level=settings.LOG_LEVEL)
    logger.info("application_startup", environment=settings.environment)

    events = get_event_bus()
    service = build_dispatch_service(settings, events, get_circuit_breaker_registry())
    service.start()

    scheduled_tasks.init(service, settings)
    stop_scheduler = scheduled_tasks.run_continuously()

    shutdown = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("shutdown_signal_received", signal=signum)
        shutdown.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)
    shutdown.wait()

    stop_scheduler.set()
    service.stop()
    events.shutdown(wait=False)
    logger.info("application_shutdown")


if __name__ == "__main__":  # pragma: no cover
    main()
