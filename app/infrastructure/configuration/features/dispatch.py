"""Dispatch orchestration settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class DispatchSettings(FeatureSettings):
    """Dispatch orchestrator configuration.

    Environment Variables:
        DISPATCH_DEDUP_WINDOW_SECONDS: Window in which a repeated correlation
            key returns the prior record (default: 86400s = 24h)
        DISPATCH_LANE_WORKERS: Background threads draining the delivery lanes
        DISPATCH_LANE_RECOVERY_SECONDS: Delay after which a queued record that
            never left its lane becomes due for the retry picker
        DISPATCH_SYNC_WORKERS: Thread pool size for synchronous sends
        DISPATCH_STORE_BACKEND: Notification record store backend ('memory')

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        window = settings.dispatch.dedup_window_seconds
        ```
    """

    dedup_window_seconds: int = Field(
        default=86400,
        alias="DISPATCH_DEDUP_WINDOW_SECONDS",
        description="Correlation key deduplication window (seconds)",
    )
    lane_workers: int = Field(
        default=4,
        alias="DISPATCH_LANE_WORKERS",
        description="Number of background lane worker threads",
    )
    lane_recovery_seconds: int = Field(
        default=600,
        alias="DISPATCH_LANE_RECOVERY_SECONDS",
        description="Seconds before an unprocessed lane entry is picked up again",
    )
    sync_workers: int = Field(
        default=16,
        alias="DISPATCH_SYNC_WORKERS",
        description="Thread pool size for synchronous deliveries",
    )
    store_backend: str = Field(
        default="memory",
        alias="DISPATCH_STORE_BACKEND",
        description="Notification record store backend",
    )
