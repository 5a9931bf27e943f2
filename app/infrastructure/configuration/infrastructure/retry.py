"""Retry pickup infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry picker configuration.

    Backoff itself is per (service, channel) retry policy; these settings only
    control how the background picker finds and claims due records.

    Environment Variables:
        RETRY_ENABLED: Run the retry picker job (default: True)
        RETRY_PICKUP_INTERVAL_SECONDS: Interval between picker passes (default: 60s)
        RETRY_BATCH_SIZE: Records claimed per pass (default: 100)
        RETRY_CLAIM_LEASE_SECONDS: Claim duration (default: 300s = 5min)
        RETRY_LOCK_TTL_SECONDS: TTL of the distributed picker lock (default: 120s)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.retry.enabled:
            batch_size = settings.retry.batch_size
        ```
    """

    enabled: bool = Field(
        default=True,
        alias="RETRY_ENABLED",
        description="Enable the background retry picker",
    )
    pickup_interval_seconds: int = Field(
        default=60,
        alias="RETRY_PICKUP_INTERVAL_SECONDS",
        description="Seconds between retry picker passes",
    )
    batch_size: int = Field(
        default=100,
        alias="RETRY_BATCH_SIZE",
        description="Number of due records to process per pass",
    )
    claim_lease_seconds: int = Field(
        default=300,
        alias="RETRY_CLAIM_LEASE_SECONDS",
        description="Duration to hold a claim on a due record (seconds)",
    )
    lock_ttl_seconds: int = Field(
        default=120,
        alias="RETRY_LOCK_TTL_SECONDS",
        description="Expiry of the distributed lock held by a picker pass",
    )
