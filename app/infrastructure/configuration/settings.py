"""Notification dispatch configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import (
    AwsSettings,
    NotifySettings,
    PushSettings,
    RedisSettings,
)

# Feature settings
from infrastructure.configuration.features import (
    DispatchSettings,
    RateLimitSettings,
    BudgetSettings,
)

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    RetrySettings,
    CircuitBreakerSettings,
)


class Settings(BaseSettings):
    """Dispatch engine configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object:

    - **Integrations**: Provider and store connections (Notify, push, Redis, AWS)
    - **Features**: Dispatch, rate limit and budget behaviour
    - **Infrastructure**: Retry pickup and circuit breaking

    Environment Variables:
        PREFIX: Environment prefix, empty in production
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.redis.enabled:
            url = settings.redis.REDIS_URL

        window = settings.dispatch.dedup_window_seconds
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    aws: AwsSettings
    notify: NotifySettings
    push: PushSettings
    redis: RedisSettings

    # Feature settings
    dispatch: DispatchSettings
    rate_limit: RateLimitSettings
    budget: BudgetSettings

    # Infrastructure settings
    retry: RetrySettings
    circuit_breaker: CircuitBreakerSettings

    @property
    def is_production(self) -> bool:
        """True when PREFIX is empty."""
        return not bool(self.PREFIX)

    @property
    def environment(self) -> str:
        return "production" if self.is_production else self.PREFIX.strip("-_") or "dev"

    def __init__(self, **kwargs):
        """Initialize Settings, instantiating any section not passed in."""
        settings_map = {
            "aws": AwsSettings,
            "notify": NotifySettings,
            "push": PushSettings,
            "redis": RedisSettings,
            "dispatch": DispatchSettings,
            "rate_limit": RateLimitSettings,
            "budget": BudgetSettings,
            "retry": RetrySettings,
            "circuit_breaker": CircuitBreakerSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create the singleton settings instance
settings = Settings()
