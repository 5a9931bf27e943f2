"""Provider contract shared by every channel.

A provider wraps one third-party sending API. It never raises for delivery
problems: every outcome, including transport errors, comes back as a
DeliveryResult with an error code the retry scheduler can classify.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from infrastructure.operations import OperationResult, OperationStatus
from modules.dispatch.domain import errors
from modules.dispatch.domain.models import NotificationRecord
from modules.dispatch.domain.types import Channel, ErrorClass


@dataclass(frozen=True)
class DeliveryRequest:
    """What a provider needs to send one message."""

    record_id: str
    channel: Channel
    recipient: str
    body: str
    subject: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: NotificationRecord) -> "DeliveryRequest":
        intent = record.intent
        return cls(
            record_id=record.id,
            channel=intent.channel,
            recipient=intent.recipient,
            body=intent.body,
            subject=intent.subject,
            metadata=dict(intent.metadata),
        )


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    provider_name: Optional[str] = None
    provider_message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retry_after_seconds: Optional[int] = None

    @property
    def error_class(self) -> Optional[ErrorClass]:
        if self.success:
            return None
        return errors.classify_error(self.error_code)

    @property
    def is_permanent_failure(self) -> bool:
        return self.error_class == ErrorClass.PERMANENT

    @classmethod
    def accepted(cls, provider_name: str, message_id: Optional[str]) -> "DeliveryResult":
        return cls(success=True, provider_name=provider_name, provider_message_id=message_id)

    @classmethod
    def failed(
        cls,
        provider_name: Optional[str],
        error_code: str,
        error_message: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
    ) -> "DeliveryResult":
        return cls(
            success=False,
            provider_name=provider_name,
            error_code=error_code,
            error_message=error_message,
            retry_after_seconds=retry_after_seconds,
        )


class ProviderClient(Protocol):
    """One sending API for one channel."""

    name: str
    channel: Channel

    def send(self, request: DeliveryRequest) -> DeliveryResult: ...

    def health_check(self) -> bool: ...


def result_from_operation(
    provider_name: str,
    result: OperationResult,
    invalid_request_code: str = errors.INVALID_RECIPIENT,
) -> DeliveryResult:
    """Translate an HTTP client OperationResult into a DeliveryResult.

    ``invalid_request_code`` is what a non-retryable 4xx from this provider
    means, usually a recipient the provider refuses.
    """
    if result.is_success:
        data = result.data or {}
        message_id = data.get("id") or data.get("message_id")
        return DeliveryResult.accepted(provider_name, message_id)

    code = result.error_code
    if result.status == OperationStatus.UNAUTHORIZED:
        code = errors.UNAUTHORIZED
    elif result.status in (OperationStatus.PERMANENT_ERROR, OperationStatus.NOT_FOUND):
        if code not in errors.PERMANENT_ERROR_CODES:
            code = invalid_request_code
    elif code == "CONNECTION_ERROR":
        code = errors.PROVIDER_ERROR
    elif code not in (
        errors.PROVIDER_TIMEOUT,
        errors.PROVIDER_ERROR,
        errors.RATE_LIMITED,
    ):
        code = errors.PROVIDER_ERROR

    return DeliveryResult.failed(
        provider_name,
        error_code=code,
        error_message=result.message,
        retry_after_seconds=result.retry_after,
    )
