"""Retry pickup models."""

from dataclasses import dataclass, fields
from enum import Enum


class RetryResult(Enum):
    """Outcome of processing a due record.

    Values:
        SUCCESS: Record was delivered or handed to a delivery lane
        RETRY: Record failed again and has a later attempt scheduled
        PERMANENT_FAILURE: Record reached a terminal state (failed or denied)
    """

    SUCCESS = "success"
    RETRY = "retry"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass
class RetryBatchStats:
    processed: int = 0
    successful: int = 0
    retried: int = 0
    permanent_failures: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
