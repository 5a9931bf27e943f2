"""Delivery providers and their circuit-breaking gateways."""

from modules.dispatch.providers.base import (
    DeliveryRequest,
    DeliveryResult,
    ProviderClient,
    result_from_operation,
)
from modules.dispatch.providers.gateway import (
    ChannelGateway,
    ProviderGateway,
    ProviderTable,
)
from modules.dispatch.providers.in_app import InAppProvider
from modules.dispatch.providers.notify import NotifyEmailProvider, NotifySmsProvider
from modules.dispatch.providers.push import PushGatewayProvider

__all__ = [
    "DeliveryRequest",
    "DeliveryResult",
    "ProviderClient",
    "result_from_operation",
    "ChannelGateway",
    "ProviderGateway",
    "ProviderTable",
    "InAppProvider",
    "NotifyEmailProvider",
    "NotifySmsProvider",
    "PushGatewayProvider",
]
