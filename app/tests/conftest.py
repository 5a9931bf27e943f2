"""Shared fixtures for the dispatch engine test suite."""

import pytest

from infrastructure.events import EventBus
from tests.factories.dispatch import FakeClock, make_intent, make_record


@pytest.fixture
def clock():
    """Manually advanced UTC clock, starting 2026-10-15 12:00."""
    return FakeClock()


@pytest.fixture
def intent_factory():
    """Factory for creating NotificationIntent instances."""
    return make_intent


@pytest.fixture
def record_factory():
    """Factory for creating NotificationRecord instances."""
    return make_record


@pytest.fixture
def event_bus():
    bus = EventBus()
    yield bus
    bus.shutdown(wait=True)


@pytest.fixture
def captured_events(event_bus):
    """List receiving every event published on ``event_bus``."""
    received = []
    event_bus.register("*", received.append)
    return received
