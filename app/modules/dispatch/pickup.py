"""Retry picker processor.

Feeds due records back through the orchestrator. The claim on each record is
taken by the RetryWorker, so a record is never re-admitted twice at once. A
record handed to a lane is released early so a lane worker can claim it.
"""

from infrastructure.resilience.retry import RetryResult
from modules.dispatch.domain.types import OutcomeStatus
from modules.dispatch.orchestrator import DispatchOrchestrator

PICKER_WORKER_ID = "retry-picker"

_RESULTS = {
    OutcomeStatus.SENT: RetryResult.SUCCESS,
    OutcomeStatus.QUEUED: RetryResult.SUCCESS,
    OutcomeStatus.RETRY_SCHEDULED: RetryResult.RETRY,
}


class NotificationRetryProcessor:
    def __init__(
        self, orchestrator: DispatchOrchestrator, worker_id: str = PICKER_WORKER_ID
    ):
        self.orchestrator = orchestrator
        self.worker_id = worker_id

    def process_record(self, record_id: str) -> RetryResult:
        outcome = self.orchestrator.readmit(record_id, claimed_by=self.worker_id)
        if outcome.status == OutcomeStatus.QUEUED and outcome.error_code:
            # admission could not complete, the record stays due
            return RetryResult.RETRY
        return _RESULTS.get(outcome.status, RetryResult.PERMANENT_FAILURE)
