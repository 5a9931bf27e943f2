"""Claim-based retry worker.

The worker fetches records whose next attempt is due, claims each one with a
lease so that a concurrent pass cannot take it, and hands it to a
RetryProcessor. The processor owns all state changes of the record; the
worker only tracks claims and statistics.
"""

from typing import List, Protocol

import structlog
from infrastructure.resilience.retry.config import RetryConfig
from infrastructure.resilience.retry.models import RetryBatchStats, RetryResult

logger = structlog.get_logger()


class DueRecord(Protocol):
    id: str


class DueRecordSource(Protocol):
    """Store side of the retry pickup."""

    def fetch_due(self, limit: int) -> List[DueRecord]: ...

    def claim_record(self, record_id: str, worker_id: str, lease_seconds: int) -> bool:
        """Claim a record; False if another worker holds a live lease."""
        ...

    def release_claim(self, record_id: str, worker_id: str) -> None: ...


class RetryProcessor(Protocol):
    """Processes one claimed record.

    Example:
        class NotificationRetryProcessor:
            def process_record(self, record_id: str) -> RetryResult:
                outcome = orchestrator.readmit(record_id)
                ...
    """

    def process_record(self, record_id: str) -> RetryResult: ...


class RetryWorker:
    """Processes batches of due records.

    Attributes:
        source: Store of due records
        processor: Domain logic for a single record
        config: Batch size and claim lease
        worker_id: Identifier for this worker instance
    """

    def __init__(
        self,
        source: DueRecordSource,
        processor: RetryProcessor,
        config: RetryConfig | None = None,
        worker_id: str = "retry-worker-1",
    ) -> None:
        self.source = source
        self.processor = processor
        self.config = config or RetryConfig()
        self.worker_id = worker_id
        self.log = logger.bind(component="retry_worker", worker_id=worker_id)

    def process_batch(self) -> dict:
        """Process one batch of due records.

        Safe to call repeatedly. A record whose processing raised is released
        untouched and is picked up again by a later pass.

        Returns:
            Dictionary with processing statistics (processed, successful,
            retried, permanent_failures, skipped, errors).
        """
        stats = RetryBatchStats()
        records = self.source.fetch_due(limit=self.config.batch_size)

        if not records:
            self.log.debug("retry_batch_no_records")
            return stats.as_dict()

        self.log.info("retry_batch_start", record_count=len(records))

        for record in records:
            if not self.source.claim_record(
                record.id, self.worker_id, self.config.claim_lease_seconds
            ):
                self.log.debug("retry_record_skipped_claim_failed", record_id=record.id)
                stats.skipped += 1
                continue

            try:
                result = self.processor.process_record(record.id)
            except Exception as e:  # pylint: disable=broad-except
                self.log.error(
                    "retry_processing_exception",
                    record_id=record.id,
                    error=str(e),
                    exc_info=True,
                )
                stats.errors += 1
                continue
            finally:
                self.source.release_claim(record.id, self.worker_id)

            stats.processed += 1
            if result == RetryResult.SUCCESS:
                stats.successful += 1
            elif result == RetryResult.RETRY:
                stats.retried += 1
            elif result == RetryResult.PERMANENT_FAILURE:
                stats.permanent_failures += 1

        self.log.info("retry_batch_complete", **stats.as_dict())
        return stats.as_dict()
