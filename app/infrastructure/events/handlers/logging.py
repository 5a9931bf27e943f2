"""Logging handler for the event bus.

Writes every event to the structured log so that transitions remain visible
when no downstream consumer is subscribed.
"""

import structlog
from infrastructure.events.models import Event

logger = structlog.get_logger()


class LoggingHandler:
    """Handles structured logging for events."""

    def __init__(self):
        self.log = logger.bind(component="event_log_handler")

    def handle(self, event: Event) -> None:
        self.log.info(
            "event_occurred",
            event_type=event.event_type,
            correlation_id=event.correlation_id,
            tenant_id=event.tenant_id,
            record_id=event.record_id,
            metadata=event.metadata,
            timestamp=event.timestamp.isoformat(),
        )

    __call__ = handle
