"""Dispatch domain: intents, records, outcomes, enums and errors."""

from modules.dispatch.domain.errors import (
    BudgetStoreError,
    DispatchError,
    InvalidTransitionError,
    RateLimitStoreError,
    RecordNotFoundError,
    RecordStoreError,
    classify_error,
)
from modules.dispatch.domain.models import (
    DispatchOutcome,
    NotificationIntent,
    NotificationRecord,
    utc_now,
)
from modules.dispatch.domain.types import (
    Channel,
    DeliveryClass,
    ErrorClass,
    OutcomeStatus,
    Priority,
    RateLimitScope,
    RecordStatus,
)

__all__ = [
    "BudgetStoreError",
    "DispatchError",
    "InvalidTransitionError",
    "RateLimitStoreError",
    "RecordNotFoundError",
    "RecordStoreError",
    "classify_error",
    "DispatchOutcome",
    "NotificationIntent",
    "NotificationRecord",
    "utc_now",
    "Channel",
    "DeliveryClass",
    "ErrorClass",
    "OutcomeStatus",
    "Priority",
    "RateLimitScope",
    "RecordStatus",
]
