"""GC Notify backed SMS and email providers."""

from integrations import notify
from modules.dispatch.domain import errors
from modules.dispatch.domain.types import Channel
from modules.dispatch.providers.base import (
    DeliveryRequest,
    DeliveryResult,
    result_from_operation,
)


class NotifySmsProvider:
    channel = Channel.SMS

    def __init__(self, name: str = "notify-sms"):
        self.name = name

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        result = notify.send_sms(
            phone_number=request.recipient,
            body=request.body,
            reference=request.record_id,
        )
        return result_from_operation(
            self.name, result, invalid_request_code=errors.INVALID_PHONE_FORMAT
        )

    def health_check(self) -> bool:
        return notify.get_status().is_success


class NotifyEmailProvider:
    channel = Channel.EMAIL

    def __init__(self, name: str = "notify-email"):
        self.name = name

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        result = notify.send_email(
            email_address=request.recipient,
            subject=request.subject,
            body=request.body,
            reference=request.record_id,
        )
        return result_from_operation(
            self.name, result, invalid_request_code=errors.INVALID_EMAIL
        )

    def health_check(self) -> bool:
        return notify.get_status().is_success
