"""Redis integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class RedisSettings(IntegrationSettings):
    """Redis connection used for token buckets, circuit state and locks.

    Environment Variables:
        REDIS_URL: Connection URL, e.g. redis://localhost:6379/0. Empty means
            every Redis-capable component falls back to its in-memory backend.
        REDIS_KEY_PREFIX: Namespace prepended to every key
        REDIS_SOCKET_TIMEOUT_SECONDS: Socket timeout for commands
    """

    REDIS_URL: str = Field(default="", alias="REDIS_URL")
    REDIS_KEY_PREFIX: str = Field(default="dispatch", alias="REDIS_KEY_PREFIX")
    REDIS_SOCKET_TIMEOUT_SECONDS: float = Field(
        default=0.5, alias="REDIS_SOCKET_TIMEOUT_SECONDS"
    )

    @property
    def enabled(self) -> bool:
        return bool(self.REDIS_URL)
