"""Event handlers for the event bus."""

from infrastructure.events.handlers.logging import LoggingHandler

__all__ = ["LoggingHandler"]
