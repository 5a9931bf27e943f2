"""Rate limiting settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class RateLimitSettings(FeatureSettings):
    """Token bucket rate limiter configuration.

    Environment Variables:
        RATE_LIMIT_ENABLED: Enforce quotas (default: True)
        RATE_LIMIT_BACKEND: 'memory' (single process) or 'redis'
        RATE_LIMIT_ADMIN_SCOPE: Credential scope allowed to bypass quotas
    """

    enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    backend: str = Field(default="memory", alias="RATE_LIMIT_BACKEND")
    admin_scope: str = Field(default="notifications:admin", alias="RATE_LIMIT_ADMIN_SCOPE")
