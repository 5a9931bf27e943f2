"""In-process event bus.

Handlers subscribe to an event type and are called when events of that type
are published. A failing handler is logged and never interrupts the
remaining handlers or the publisher.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger

logger = get_module_logger()

EventHandler = Callable[[Event], Any]

WILDCARD_EVENT = "*"


class EventBus:
    """Registry of event handlers with synchronous and background dispatch.

    Handlers subscribed to ``"*"`` receive every event.
    """

    def __init__(self, max_workers: int = 4):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._lock = Lock()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._shutdown = False

    def register(self, event_type: str, handler: EventHandler) -> EventHandler:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            total = len(self._handlers[event_type])
        logger.debug(
            "registered_event_handler",
            handler=getattr(handler, "__name__", "unknown"),
            event_type=event_type,
            total_handlers=total,
        )
        return handler

    def subscribe(self, event_type: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of :meth:`register`."""

        def decorator(handler: EventHandler) -> EventHandler:
            return self.register(event_type, handler)

        return decorator

    def handlers_for(self, event_type: str) -> List[EventHandler]:
        with self._lock:
            return list(self._handlers.get(event_type, [])) + list(
                self._handlers.get(WILDCARD_EVENT, [])
            )

    def registered_events(self) -> List[str]:
        with self._lock:
            return sorted(self._handlers.keys())

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def dispatch(self, event: Event) -> List[Any]:
        """Dispatch an event synchronously to every matching handler.

        Args:
            event: The event to dispatch.

        Returns:
            Return values of the handlers that completed.
        """
        handlers = self.handlers_for(event.event_type)
        logger.debug(
            "dispatching_event",
            event_type=event.event_type,
            handler_count=len(handlers),
            correlation_id=event.correlation_id,
        )
        results = []
        for handler in handlers:
            try:
                results.append(handler(event))
            except Exception as e:  # pylint: disable=broad-except
                logger.error(
                    "event_handler_failed",
                    handler=getattr(handler, "__name__", "unknown"),
                    event_type=event.event_type,
                    error=str(e),
                    correlation_id=event.correlation_id,
                )
        return results

    def dispatch_background(self, event: Event) -> None:
        """Dispatch an event on the bus executor.

        Falls back to synchronous dispatch once the bus has been shut down.
        """
        executor = self._get_or_create_executor()
        if executor is None:
            self.dispatch(event)
            return
        executor.submit(self._background_worker, event)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._shutdown = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.debug("background_event_executor_shutdown")

    def _background_worker(self, event: Event) -> None:
        try:
            self.dispatch(event)
        except Exception as e:  # pylint: disable=broad-except
            logger.exception(
                "background_event_dispatch_failed",
                event_type=event.event_type,
                error=str(e),
                correlation_id=event.correlation_id,
            )

    def _get_or_create_executor(self) -> Optional[ThreadPoolExecutor]:
        with self._lock:
            if self._shutdown:
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="events"
                )
                logger.debug(
                    "created_background_event_executor",
                    max_workers=self._max_workers,
                )
            return self._executor
