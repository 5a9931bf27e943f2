"""Push gateway provider."""

from integrations import push
from modules.dispatch.domain import errors
from modules.dispatch.domain.types import Channel
from modules.dispatch.providers.base import (
    DeliveryRequest,
    DeliveryResult,
    result_from_operation,
)


class PushGatewayProvider:
    channel = Channel.PUSH

    def __init__(self, name: str = "push-gateway"):
        self.name = name

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        result = push.send_push(
            device_token=request.recipient,
            title=request.subject,
            body=request.body,
            data=request.metadata,
        )
        return result_from_operation(
            self.name, result, invalid_request_code=errors.TOKEN_REVOKED
        )

    def health_check(self) -> bool:
        return push.get_status().is_success
