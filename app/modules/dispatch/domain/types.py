"""Enumerations shared across the dispatch module."""

from enum import Enum


class Channel(str, Enum):
    """Delivery channels."""

    SMS = "sms"
    EMAIL = "email"
    PUSH = "push"
    IN_APP = "in_app"


class Priority(str, Enum):
    """Notification priority levels.

    HIGH and URGENT are allowed past an exhausted budget.
    """

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def overrides_budget(self) -> bool:
        return self in (Priority.HIGH, Priority.URGENT)


class DeliveryClass(str, Enum):
    """How a notification is delivered after admission."""

    SYNCHRONOUS = "synchronous"
    PRIORITY_QUEUE = "priority_queue"
    STANDARD_QUEUE = "standard_queue"
    BULK_QUEUE = "bulk_queue"


class RecordStatus(str, Enum):
    """Lifecycle status of a NotificationRecord.

    QUEUED covers freshly admitted records, records waiting in a lane,
    scheduled records and records pending a retry.
    """

    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DENIED_QUOTA = "denied_quota"
    DENIED_BUDGET = "denied_budget"

    @property
    def is_terminal(self) -> bool:
        return self not in (RecordStatus.QUEUED, RecordStatus.SENT)


class OutcomeStatus(str, Enum):
    """Result of a dispatch call as seen by the caller."""

    SENT = "sent"
    QUEUED = "queued"
    RETRY_SCHEDULED = "retry_scheduled"
    DENIED_QUOTA = "denied_quota"
    DENIED_BUDGET = "denied_budget"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorClass(str, Enum):
    """Retryability of a delivery error."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class RateLimitScope(str, Enum):
    USER = "user"
    SERVICE = "service"
    TENANT = "tenant"
