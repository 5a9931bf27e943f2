"""
Application-scoped service providers.
"""

from infrastructure.services.providers import (
    get_circuit_breaker_registry,
    get_event_bus,
    get_settings,
)

__all__ = [
    "get_circuit_breaker_registry",
    "get_event_bus",
    "get_settings",
]
