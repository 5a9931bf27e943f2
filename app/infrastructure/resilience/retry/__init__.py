"""Claim-based pickup of records whose next attempt is due."""

from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryBatchStats, RetryResult
from infrastructure.resilience.retry.worker import (
    DueRecord,
    DueRecordSource,
    RetryProcessor,
    RetryWorker,
)

__all__ = [
    "RetryConfig",
    "RetryBatchStats",
    "RetryResult",
    "DueRecord",
    "DueRecordSource",
    "RetryProcessor",
    "RetryWorker",
]
