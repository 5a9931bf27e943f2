"""Event bus used to publish notification transitions and budget alerts."""

from infrastructure.events.dispatcher import WILDCARD_EVENT, EventBus, EventHandler
from infrastructure.events.handlers import LoggingHandler
from infrastructure.events.models import Event

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "LoggingHandler",
    "WILDCARD_EVENT",
]
