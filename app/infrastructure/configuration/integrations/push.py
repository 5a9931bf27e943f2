"""Push gateway integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class PushSettings(IntegrationSettings):
    """HTTP push gateway configuration.

    Environment Variables:
        PUSH_GATEWAY_URL: Base URL of the push gateway (empty disables push)
        PUSH_GATEWAY_API_KEY: API key sent as a bearer token
        PUSH_TIMEOUT_SECONDS: HTTP timeout for a single send
    """

    PUSH_GATEWAY_URL: str = Field(default="", alias="PUSH_GATEWAY_URL")
    PUSH_GATEWAY_API_KEY: str | None = Field(default=None, alias="PUSH_GATEWAY_API_KEY")
    PUSH_TIMEOUT_SECONDS: float = Field(default=5.0, alias="PUSH_TIMEOUT_SECONDS")
