"""Multi-tenant notification dispatch engine.

Admission (rate limit, budget), routing, provider delivery with circuit
breaking and failover, and retry scheduling for SMS, email, push and in-app
notifications.
"""

from modules.dispatch.bootstrap import DispatchService, build_dispatch_service
from modules.dispatch.domain import (
    Channel,
    DeliveryClass,
    DispatchOutcome,
    NotificationIntent,
    NotificationRecord,
    OutcomeStatus,
    Priority,
    RecordStatus,
)
from modules.dispatch.orchestrator import DispatchOrchestrator

__all__ = [
    "DispatchService",
    "build_dispatch_service",
    "Channel",
    "DeliveryClass",
    "DispatchOutcome",
    "NotificationIntent",
    "NotificationRecord",
    "OutcomeStatus",
    "Priority",
    "RecordStatus",
    "DispatchOrchestrator",
]
