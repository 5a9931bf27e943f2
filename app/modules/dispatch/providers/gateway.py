"""Provider gateways.

ProviderGateway puts a circuit breaker in front of one provider. A
ChannelGateway holds the ranked gateways of one channel and fails over from
the primary to the next provider while failures are transient. The
ProviderTable maps each channel to its ChannelGateway and is handed to the
orchestrator at construction time.
"""

from typing import Dict, Iterable, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.resilience import CircuitBreaker, CircuitState
from modules.dispatch.domain import errors
from modules.dispatch.domain.types import Channel
from modules.dispatch.providers.base import (
    DeliveryRequest,
    DeliveryResult,
    ProviderClient,
)

logger = get_module_logger()

# Permanent errors that say nothing about provider health
RECIPIENT_ERROR_CODES = errors.PERMANENT_ERROR_CODES - {errors.UNAUTHORIZED}


class ProviderGateway:
    """One provider guarded by its circuit breaker."""

    def __init__(self, provider: ProviderClient, breaker: CircuitBreaker):
        self.provider = provider
        self.breaker = breaker

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def channel(self) -> Channel:
        return self.provider.channel

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        """Send through the provider unless its circuit rejects the call.

        A rejected call returns PROVIDER_UNAVAILABLE without touching the
        provider. Recipient errors count as a healthy provider response.
        """
        if not self.breaker.allow_request():
            return DeliveryResult.failed(
                self.name,
                errors.PROVIDER_UNAVAILABLE,
                f"Circuit open for provider {self.name}",
            )

        try:
            result = self.provider.send(request)
        except Exception as e:  # pylint: disable=broad-except
            logger.exception(
                "provider_send_failed",
                provider=self.name,
                record_id=request.record_id,
                error=str(e),
            )
            result = DeliveryResult.failed(self.name, errors.PROVIDER_ERROR, str(e))

        if result.success or result.error_code in RECIPIENT_ERROR_CODES:
            self.breaker.record_success()
        else:
            self.breaker.record_failure(result.error_code)
        return result

    def health_check(self) -> bool:
        if self.breaker.state == CircuitState.OPEN:
            return False
        try:
            return bool(self.provider.health_check())
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("provider_health_check_failed", provider=self.name, error=str(e))
            return False


class ChannelGateway:
    """Ranked providers for one channel, primary first."""

    def __init__(self, channel: Channel, gateways: Iterable[ProviderGateway]):
        self.channel = channel
        self.gateways: List[ProviderGateway] = list(gateways)
        for gateway in self.gateways:
            if gateway.channel != channel:
                raise ValueError(
                    f"Provider {gateway.name} serves {gateway.channel.value}, "
                    f"not {channel.value}"
                )

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        """Send through the first provider that accepts the message.

        Stops at a permanent failure, since the next provider would reject
        the same recipient. Returns the last failure when every provider
        failed.
        """
        if not self.gateways:
            return DeliveryResult.failed(
                None, errors.NO_PROVIDER, f"No provider for {self.channel.value}"
            )

        result: Optional[DeliveryResult] = None
        for rank, gateway in enumerate(self.gateways):
            result = gateway.send(request)
            if result.success or result.is_permanent_failure:
                return result
            logger.info(
                "provider_failover",
                channel=self.channel.value,
                provider=gateway.name,
                rank=rank,
                error_code=result.error_code,
                record_id=request.record_id,
            )
        return result

    def health_check(self) -> bool:
        return any(gateway.health_check() for gateway in self.gateways)

    def health_summary(self) -> Dict[str, bool]:
        return {gateway.name: gateway.health_check() for gateway in self.gateways}


class ProviderTable:
    """Channel to ChannelGateway lookup."""

    def __init__(self, channels: Optional[Dict[Channel, ChannelGateway]] = None):
        self._channels: Dict[Channel, ChannelGateway] = dict(channels or {})

    def register(self, channel_gateway: ChannelGateway) -> None:
        self._channels[channel_gateway.channel] = channel_gateway

    def for_channel(self, channel: Channel) -> ChannelGateway:
        gateway = self._channels.get(channel)
        if gateway is None:
            return ChannelGateway(channel, [])
        return gateway

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        return self.for_channel(request.channel).send(request)

    def health_summary(self) -> Dict[str, Dict[str, bool]]:
        return {
            channel.value: gateway.health_summary()
            for channel, gateway in self._channels.items()
        }
