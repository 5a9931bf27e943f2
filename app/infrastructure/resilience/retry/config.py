"""Retry pickup configuration."""

from dataclasses import dataclass


@dataclass
class RetryConfig:
    """Configuration for a retry pickup pass.

    Attributes:
        batch_size: Number of due records fetched in a single pass
        claim_lease_seconds: How long a worker can hold a claim on a record

    Example:
        config = RetryConfig(batch_size=50)
    """

    batch_size: int = 100
    claim_lease_seconds: int = 300  # 5 minutes

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.claim_lease_seconds < 1:
            raise ValueError("claim_lease_seconds must be at least 1")
