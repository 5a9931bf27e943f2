"""Delivery classification.

Decides whether a notification is sent while the caller waits or handed to
one of the background lanes, and how long each class is expected to take.
"""

from datetime import timedelta
from typing import Dict, Iterable, Optional

from modules.dispatch.domain.models import NotificationIntent
from modules.dispatch.domain.types import DeliveryClass, Priority

# Template keys containing one of these are safety critical and sent inline
CRITICAL_TEMPLATE_MARKERS = (
    "driver_assign",
    "driver_assigned",
    "ride_assign",
    "otp",
    "2fa",
    "two_factor",
)

EXPECTED_LATENCY: Dict[DeliveryClass, timedelta] = {
    DeliveryClass.SYNCHRONOUS: timedelta(seconds=2),
    DeliveryClass.PRIORITY_QUEUE: timedelta(seconds=5),
    DeliveryClass.STANDARD_QUEUE: timedelta(seconds=30),
    DeliveryClass.BULK_QUEUE: timedelta(minutes=5),
}


class DeliveryRouter:
    """Classifies intents into delivery classes.

    Rules, first match wins:
        1. explicit synchronous flag or critical template: SYNCHRONOUS
        2. HIGH or URGENT priority: PRIORITY_QUEUE
        3. bulk flag or LOW priority: BULK_QUEUE
        4. otherwise: STANDARD_QUEUE
    """

    def __init__(
        self,
        critical_markers: Iterable[str] = CRITICAL_TEMPLATE_MARKERS,
        latencies: Optional[Dict[DeliveryClass, timedelta]] = None,
    ):
        self.critical_markers = tuple(m.lower() for m in critical_markers)
        self.latencies = {**EXPECTED_LATENCY, **(latencies or {})}

    def is_critical(self, template_key: Optional[str]) -> bool:
        if not template_key:
            return False
        key = template_key.lower()
        return any(marker in key for marker in self.critical_markers)

    def classify(self, intent: NotificationIntent) -> DeliveryClass:
        if intent.synchronous or self.is_critical(intent.template_key):
            return DeliveryClass.SYNCHRONOUS
        if intent.priority in (Priority.HIGH, Priority.URGENT):
            return DeliveryClass.PRIORITY_QUEUE
        if intent.bulk or intent.priority == Priority.LOW:
            return DeliveryClass.BULK_QUEUE
        return DeliveryClass.STANDARD_QUEUE

    def expected_latency(self, delivery_class: DeliveryClass) -> timedelta:
        return self.latencies[delivery_class]
