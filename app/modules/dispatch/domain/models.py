"""Dispatch domain models.

NotificationIntent is what a caller asks for; it is immutable. A
NotificationRecord wraps the intent with its delivery lifecycle and is only
written by the dispatch orchestrator.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.dispatch.domain.types import (
    Channel,
    DeliveryClass,
    OutcomeStatus,
    Priority,
    RecordStatus,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationIntent(BaseModel):
    """A request to notify one user on one channel.

    Attributes:
        tenant_id: Tenant the notification is billed to
        user_id: Target user
        service_origin: Name of the service asking (e.g. "orders", "auth")
        channel: Delivery channel
        recipient: Phone number, email address, device token or hub user id
        subject: Rendered subject (email), title (push)
        body: Rendered message body
        priority: Priority level
        correlation_key: Idempotency key; repeats inside the dedup window
            return the first record
        synchronous: Caller waits for a definitive result
        template_key: Template/category the body was rendered from
        bulk: Part of a bulk campaign
        scheduled_for: Earliest admission time
        metadata: Opaque provider metadata

    Example:
        intent = NotificationIntent(
            tenant_id="acme",
            user_id="u-1",
            service_origin="auth",
            channel=Channel.SMS,
            recipient="+15555550100",
            body="Your code is 123456",
            priority=Priority.HIGH,
            correlation_key="otp-u-1-42",
            template_key="otp_login",
        )
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    service_origin: str = Field(..., min_length=1)
    channel: Channel
    recipient: str = Field(..., min_length=1)
    body: str
    subject: Optional[str] = None
    priority: Priority = Priority.NORMAL
    correlation_key: str = Field(..., min_length=1)
    synchronous: bool = False
    template_key: Optional[str] = None
    bulk: bool = False
    scheduled_for: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Notification body cannot be empty")
        return v

    @field_validator("scheduled_for")
    @classmethod
    def validate_scheduled_for(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class NotificationRecord(BaseModel):
    """Persisted lifecycle of an admitted intent.

    A record in QUEUED with ``next_attempt_at`` set is waiting for the retry
    picker: a scheduled send, a retry after a transient failure, or a lane
    entry that was never processed. ``in_lane`` marks a record handed to a
    delivery lane; ``next_attempt_at`` is then the recovery point used if no
    lane worker ever picks it up.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    intent: NotificationIntent
    status: RecordStatus = RecordStatus.QUEUED
    delivery_class: Optional[DeliveryClass] = None
    in_lane: bool = False
    unit_count: int = 1
    attempts: int = 0
    next_attempt_at: Optional[datetime] = None
    last_error_code: Optional[str] = None
    last_error_message: Optional[str] = None
    provider_name: Optional[str] = None
    provider_message_id: Optional[str] = None
    cost_micros: int = 0
    warning: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    @property
    def tenant_id(self) -> str:
        return self.intent.tenant_id

    @property
    def channel(self) -> Channel:
        return self.intent.channel

    @property
    def correlation_key(self) -> str:
        return self.intent.correlation_key

    @property
    def is_retry_pending(self) -> bool:
        return (
            self.status == RecordStatus.QUEUED
            and self.attempts > 0
            and self.next_attempt_at is not None
            and not self.in_lane
        )


class DispatchOutcome(BaseModel):
    """What the caller of ``dispatch`` gets back.

    Attributes:
        status: Outcome status
        record_id: Id of the (possibly pre-existing) record
        duplicate: The correlation key matched an earlier record
        delivery_class: Routing decision, when admission got that far
        provider_message_id: Provider id on synchronous success
        error_code: Machine-readable reason for denials and failures
        error_message: Human-readable detail
        retry_after_seconds: Quota retry hint
        utilization: Budget utilization on budget denial
        warning: Warning attached by the budget enforcer
    """

    status: OutcomeStatus
    record_id: str
    duplicate: bool = False
    delivery_class: Optional[DeliveryClass] = None
    provider_message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retry_after_seconds: Optional[float] = None
    utilization: Optional[float] = None
    warning: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status in (OutcomeStatus.SENT, OutcomeStatus.QUEUED)

    @property
    def http_status(self) -> int:
        """HTTP status code an API layer should answer with."""
        if self.status == OutcomeStatus.SENT:
            return 200
        if self.status in (OutcomeStatus.QUEUED, OutcomeStatus.RETRY_SCHEDULED):
            return 202
        if self.status == OutcomeStatus.DENIED_QUOTA:
            return 429
        if self.status == OutcomeStatus.DENIED_BUDGET:
            return 402
        if self.status == OutcomeStatus.CANCELLED:
            return 409
        if self.error_code == "SYNC_TIMEOUT":
            return 504
        return 502

    @classmethod
    def from_record(
        cls, record: NotificationRecord, duplicate: bool = False
    ) -> "DispatchOutcome":
        """Describe an existing record, used for duplicate correlation keys."""
        status_map = {
            RecordStatus.QUEUED: (
                OutcomeStatus.RETRY_SCHEDULED
                if record.is_retry_pending
                else OutcomeStatus.QUEUED
            ),
            RecordStatus.SENT: OutcomeStatus.SENT,
            RecordStatus.DELIVERED: OutcomeStatus.SENT,
            RecordStatus.FAILED: OutcomeStatus.FAILED,
            RecordStatus.CANCELLED: OutcomeStatus.CANCELLED,
            RecordStatus.DENIED_QUOTA: OutcomeStatus.DENIED_QUOTA,
            RecordStatus.DENIED_BUDGET: OutcomeStatus.DENIED_BUDGET,
        }
        return cls(
            status=status_map[record.status],
            record_id=record.id,
            duplicate=duplicate,
            delivery_class=record.delivery_class,
            provider_message_id=record.provider_message_id,
            error_code=record.last_error_code,
            error_message=record.last_error_message,
            warning=record.warning,
        )
