"""Dispatch orchestrator.

Turns a NotificationIntent into a NotificationRecord and drives it through
admission (rate limit, budget), classification and delivery. The
orchestrator is the only writer of records.

Flow of ``dispatch``, each step short-circuiting the rest:
    1. create the record, or return the prior one for a duplicate key
    2. rate limit check (denial is terminal)
    3. budget check (denial is terminal)
    4. classification
    5. synchronous send within the latency budget, or hand-off to a lane
    6. on success mark sent and record cost
    7. on failure schedule a retry or dead-letter the record
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from infrastructure.events import EventBus
from infrastructure.logging import bind_dispatch_context, get_module_logger
from modules.dispatch import events as dispatch_events
from modules.dispatch.budget.costs import unit_count
from modules.dispatch.budget.enforcer import BudgetEnforcer
from modules.dispatch.domain import errors
from modules.dispatch.domain.errors import BudgetStoreError, InvalidTransitionError
from modules.dispatch.domain.models import (
    DispatchOutcome,
    NotificationIntent,
    NotificationRecord,
    utc_now,
)
from modules.dispatch.domain.types import (
    DeliveryClass,
    ErrorClass,
    OutcomeStatus,
    RecordStatus,
)
from modules.dispatch.lanes import DeliveryLanes
from modules.dispatch.providers.base import DeliveryRequest, DeliveryResult
from modules.dispatch.providers.gateway import ProviderTable
from modules.dispatch.rate_limit.limiter import RateLimiter
from modules.dispatch.records.store import NotificationStore
from modules.dispatch.retry.scheduler import RetryScheduler
from modules.dispatch.routing import DeliveryRouter

logger = get_module_logger()

OPERATOR_WORKER_ID = "operator"
LATE_RESULT_WORKER_ID = "late-result"


class DispatchOrchestrator:
    """Composes admission, routing, delivery and retry.

    Args:
        store: Notification record store
        rate_limiter: Quota enforcement
        budget: Monthly budget enforcement
        router: Delivery classification
        providers: Channel to ranked provider lookup
        retry_scheduler: Backoff and dead-letter decisions
        lanes: Background delivery lanes
        events: Bus receiving record transitions
        sync_workers: Threads available for synchronous sends
        lane_workers: Threads available for lane and retry sends
        lane_recovery_seconds: Delay after which an unprocessed lane entry is
            picked up again by the retry picker
        budget_retry_seconds: Delay before re-admitting a record whose budget
            check could not reach the ledger
        claim_lease_seconds: Lease taken on a record while a lane worker
            delivers it
        clock: UTC datetime clock
    """

    def __init__(
        self,
        store: NotificationStore,
        rate_limiter: RateLimiter,
        budget: BudgetEnforcer,
        router: DeliveryRouter,
        providers: ProviderTable,
        retry_scheduler: RetryScheduler,
        lanes: DeliveryLanes,
        events: EventBus,
        sync_workers: int = 16,
        lane_workers: int = 4,
        lane_recovery_seconds: int = 600,
        budget_retry_seconds: int = 60,
        claim_lease_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.budget = budget
        self.router = router
        self.providers = providers
        self.retry_scheduler = retry_scheduler
        self.lanes = lanes
        self.events = events
        self.lane_recovery = timedelta(seconds=lane_recovery_seconds)
        self.budget_retry = timedelta(seconds=budget_retry_seconds)
        self.claim_lease_seconds = claim_lease_seconds
        self._clock = clock
        self._sync_executor = ThreadPoolExecutor(
            max_workers=sync_workers, thread_name_prefix="sync-send"
        )
        self._lane_executor = ThreadPoolExecutor(
            max_workers=lane_workers, thread_name_prefix="lane-send"
        )

    # Entry points

    def dispatch(
        self,
        intent: NotificationIntent,
        admin_override: bool = False,
        caller_scopes: Iterable[str] = (),
    ) -> DispatchOutcome:
        """Admit and deliver (or queue) a notification intent.

        Raises:
            RecordStoreError: If the record store is unreachable
        """
        record, created = self.store.create_or_get(intent)

        with bind_dispatch_context(
            correlation_id=intent.correlation_key,
            tenant_id=intent.tenant_id,
            record_id=record.id,
        ):
            if not created:
                logger.info("dispatch_duplicate", status=record.status.value)
                return DispatchOutcome.from_record(record, duplicate=True)

            logger.info(
                "dispatch_received",
                channel=intent.channel.value,
                priority=intent.priority.value,
                service_origin=intent.service_origin,
            )

            scheduled_for = intent.scheduled_for
            if scheduled_for is not None and scheduled_for > self._clock():
                record.next_attempt_at = scheduled_for
                record = self.store.update(record)
                logger.info("dispatch_scheduled", scheduled_for=scheduled_for.isoformat())
                return DispatchOutcome.from_record(record)

            return self._admit(record, admin_override, caller_scopes)

    def readmit(
        self, record_id: str, claimed_by: Optional[str] = None
    ) -> DispatchOutcome:
        """Run a due record through admission again.

        Used by the retry picker for scheduled sends, retries and stale lane
        entries. A retry is a fresh admission: quota and budget are checked
        again. ``claimed_by`` names the caller's claim on the record, which
        is given up before the record is handed to a lane.
        """
        record = self.store.get(record_id)
        with bind_dispatch_context(
            correlation_id=record.correlation_key,
            tenant_id=record.tenant_id,
            record_id=record.id,
        ):
            if record.status != RecordStatus.QUEUED:
                logger.info("readmit_skipped", status=record.status.value)
                return DispatchOutcome.from_record(record)

            logger.info("readmit_started", attempts=record.attempts)
            record.in_lane = False
            record.next_attempt_at = None
            return self._admit(
                record, admin_override=False, caller_scopes=(), claimed_by=claimed_by
            )

    def deliver(
        self, record_id: str, worker_id: Optional[str] = None
    ) -> Optional[DispatchOutcome]:
        """Deliver a record taken from a lane.

        Returns None when the record is held by another worker or is no
        longer waiting in a lane (cancelled, already sent, re-admitted).
        ``worker_id`` defaults to the current thread name. The provider call
        is bounded by the retry policy's per-attempt timeout; no answer in
        time counts as a transient ``PROVIDER_TIMEOUT``.
        """
        worker_id = worker_id or threading.current_thread().name
        if not self.store.claim_record(record_id, worker_id, self.claim_lease_seconds):
            logger.debug("deliver_skipped_claimed", record_id=record_id)
            return None

        pending: Optional[Future] = None
        try:
            record = self.store.get(record_id)
            with bind_dispatch_context(
                correlation_id=record.correlation_key,
                tenant_id=record.tenant_id,
                record_id=record.id,
            ):
                if record.status != RecordStatus.QUEUED or not record.in_lane:
                    logger.debug("deliver_skipped_stale", status=record.status.value)
                    return None

                record.in_lane = False
                policy = self.retry_scheduler.resolve_policy(
                    record.intent.service_origin, record.channel
                )
                result, pending = self._send(
                    self._lane_executor, record, policy.timeout_seconds
                )
                if result is None:
                    logger.warning(
                        "send_timeout", timeout_seconds=policy.timeout_seconds
                    )
                    result = DeliveryResult.failed(
                        None,
                        errors.PROVIDER_TIMEOUT,
                        f"No provider answer within {policy.timeout_seconds:g}s",
                    )
                return self._apply_result(record, result)
        finally:
            self.store.release_claim(record_id, worker_id)
            if pending is not None:
                self._watch_late_result(record_id, pending)

    # Status changes driven by collaborators

    def mark_delivered(
        self, record_id: str, provider_message_id: Optional[str] = None
    ) -> NotificationRecord:
        """Provider callback: the message reached the device or inbox."""
        record = self.store.get(record_id)
        if record.status == RecordStatus.DELIVERED:
            return record
        if record.status != RecordStatus.SENT:
            raise InvalidTransitionError(
                f"Cannot mark {record.status.value} record {record_id} delivered"
            )
        record.status = RecordStatus.DELIVERED
        record.delivered_at = self._clock()
        if provider_message_id:
            record.provider_message_id = provider_message_id
        record = self.store.update(record)
        self._emit(dispatch_events.NOTIFICATION_DELIVERED, record)
        return record

    def mark_read(self, record_id: str) -> NotificationRecord:
        record = self.store.get(record_id)
        if record.status not in (RecordStatus.SENT, RecordStatus.DELIVERED):
            raise InvalidTransitionError(
                f"Cannot mark {record.status.value} record {record_id} read"
            )
        if record.read_at is None:
            record.read_at = self._clock()
            record = self.store.update(record)
            self._emit(dispatch_events.NOTIFICATION_READ, record)
        return record

    def cancel(self, record_id: str) -> NotificationRecord:
        """Cancel a record that has not been sent yet."""
        if not self.store.claim_record(
            record_id, OPERATOR_WORKER_ID, self.claim_lease_seconds
        ):
            raise InvalidTransitionError(f"Record {record_id} is being delivered")
        try:
            record = self.store.get(record_id)
            if record.status != RecordStatus.QUEUED:
                raise InvalidTransitionError(
                    f"Cannot cancel {record.status.value} record {record_id}"
                )
            record.status = RecordStatus.CANCELLED
            record.in_lane = False
            record.next_attempt_at = None
            record = self.store.update(record)
        finally:
            self.store.release_claim(record_id, OPERATOR_WORKER_ID)

        logger.info("notification_cancelled", record_id=record_id)
        self._emit(dispatch_events.NOTIFICATION_CANCELLED, record)
        return record

    def manual_retry(self, record_id: str) -> NotificationRecord:
        """Operator action: put a dead-lettered record back in the queue."""
        record = self.store.get(record_id)
        if record.status != RecordStatus.FAILED:
            raise InvalidTransitionError(
                f"Only failed records can be retried, {record_id} is {record.status.value}"
            )
        record.status = RecordStatus.QUEUED
        record.attempts = 0
        record.in_lane = False
        record.next_attempt_at = self._clock()
        record.last_error_code = None
        record.last_error_message = None
        record = self.store.update(record)
        logger.info("notification_manual_retry", record_id=record_id)
        return record

    def dead_letters(
        self, service_origin: Optional[str] = None
    ) -> List[NotificationRecord]:
        """Failed records for operator inspection, oldest failure first."""
        records = self.store.list_by_status(RecordStatus.FAILED)
        if service_origin is not None:
            records = [r for r in records if r.intent.service_origin == service_origin]
        return sorted(records, key=lambda r: r.updated_at)

    def shutdown(self, wait: bool = True) -> None:
        self._sync_executor.shutdown(wait=wait)
        self._lane_executor.shutdown(wait=wait)

    # Admission and delivery

    def _admit(
        self,
        record: NotificationRecord,
        admin_override: bool,
        caller_scopes: Iterable[str],
        claimed_by: Optional[str] = None,
    ) -> DispatchOutcome:
        intent = record.intent

        quota = self.rate_limiter.check_and_consume(
            intent.tenant_id,
            intent.user_id,
            intent.service_origin,
            intent.channel,
            admin_override=admin_override,
            caller_scopes=caller_scopes,
        )
        if not quota.allowed:
            record.status = RecordStatus.DENIED_QUOTA
            record.last_error_code = errors.QUOTA_EXCEEDED
            record.last_error_message = f"{quota.scope.value} quota exhausted"
            record = self.store.update(record)
            return DispatchOutcome(
                status=OutcomeStatus.DENIED_QUOTA,
                record_id=record.id,
                error_code=errors.QUOTA_EXCEEDED,
                error_message=record.last_error_message,
                retry_after_seconds=quota.retry_after_seconds,
            )

        record.unit_count = unit_count(intent.channel, intent.body)
        try:
            budget = self.budget.check_budget(
                intent.tenant_id,
                intent.service_origin,
                intent.channel,
                intent.priority,
                unit_count=record.unit_count,
            )
        except BudgetStoreError as e:
            logger.warning("budget_store_unavailable", error=str(e))
            record.last_error_code = errors.BUDGET_UNAVAILABLE
            record.last_error_message = str(e)
            record.next_attempt_at = self._clock() + self.budget_retry
            record = self.store.update(record)
            return DispatchOutcome.from_record(record)

        if not budget.allowed:
            record.status = RecordStatus.DENIED_BUDGET
            record.last_error_code = budget.reason
            record.last_error_message = f"Budget utilization {budget.utilization:.0%}"
            record = self.store.update(record)
            return DispatchOutcome(
                status=OutcomeStatus.DENIED_BUDGET,
                record_id=record.id,
                error_code=budget.reason,
                error_message=record.last_error_message,
                utilization=budget.utilization,
            )

        record.warning = budget.warning
        record.last_error_code = None
        record.last_error_message = None
        record.delivery_class = self.router.classify(intent)

        if record.delivery_class == DeliveryClass.SYNCHRONOUS:
            record = self.store.update(record)
            return self._deliver_sync(record)

        record.in_lane = True
        record.next_attempt_at = self._clock() + self.lane_recovery
        record = self.store.update(record)
        if claimed_by is not None:
            # a lane worker may take the entry as soon as it is enqueued
            self.store.release_claim(record.id, claimed_by)
        self.lanes.enqueue(record.id, record.delivery_class)
        logger.info("dispatch_queued", delivery_class=record.delivery_class.value)
        return DispatchOutcome.from_record(record)

    def _deliver_sync(self, record: NotificationRecord) -> DispatchOutcome:
        """Send while the caller waits, bounded by the synchronous budget.

        A timeout is a failure: the caller must assume non-delivery. A send
        that never started is cancelled. One already in flight keeps running,
        and if it succeeds late its cost is still recorded.
        """
        timeout = self.router.expected_latency(DeliveryClass.SYNCHRONOUS)
        result, pending = self._send(
            self._sync_executor, record, timeout.total_seconds()
        )
        if result is None:
            logger.warning("sync_send_timeout", timeout_seconds=timeout.total_seconds())
            record.attempts += 1
            record = self._fail(
                record,
                errors.SYNC_TIMEOUT,
                f"No provider answer within {timeout.total_seconds():g}s",
            )
            if pending is not None:
                self._watch_late_result(record.id, pending)
            return DispatchOutcome.from_record(record)

        if result.success:
            return DispatchOutcome.from_record(self._mark_sent(record, result))

        record.attempts += 1
        record.provider_name = result.provider_name
        record = self._fail(record, result.error_code, result.error_message)
        return DispatchOutcome.from_record(record)

    def _send(
        self,
        executor: ThreadPoolExecutor,
        record: NotificationRecord,
        timeout_seconds: float,
    ) -> Tuple[Optional[DeliveryResult], Optional[Future]]:
        """Run one provider attempt on ``executor`` within ``timeout_seconds``.

        Returns the result, or None on timeout together with the send that
        is still running. A send still waiting for a thread is cancelled so
        that it never reaches the provider.
        """
        future = executor.submit(self.providers.send, DeliveryRequest.from_record(record))
        try:
            return future.result(timeout=timeout_seconds), None
        except FutureTimeoutError:
            if future.cancel():
                logger.info("send_cancelled_before_start", record_id=record.id)
                return None, None
            return None, future

    def _watch_late_result(self, record_id: str, future: Future) -> None:
        future.add_done_callback(lambda done: self._late_result(record_id, done))

    def _late_result(self, record_id: str, future: Future) -> None:
        """Account for a send that answered after its timeout.

        A record still waiting for its retry is marked sent so the retry does
        not send a second copy. Any other record keeps its status and only
        the cost is recorded.
        """
        if future.cancelled() or future.exception() is not None:
            return
        result: DeliveryResult = future.result()
        if not result.success:
            return
        logger.warning(
            "send_completed_after_timeout",
            record_id=record_id,
            provider=result.provider_name,
            provider_message_id=result.provider_message_id,
        )
        if self.store.claim_record(
            record_id, LATE_RESULT_WORKER_ID, self.claim_lease_seconds
        ):
            try:
                record = self.store.get(record_id)
                if record.status == RecordStatus.QUEUED and not record.in_lane:
                    self._mark_sent(record, result, count_attempt=False)
                    return
            finally:
                self.store.release_claim(record_id, LATE_RESULT_WORKER_ID)

        record = self.store.get(record_id)
        record.provider_name = result.provider_name
        record.provider_message_id = result.provider_message_id
        record.cost_micros = self._record_cost(record)
        self.store.update(record)

    def _apply_result(
        self, record: NotificationRecord, result: DeliveryResult
    ) -> DispatchOutcome:
        if result.success:
            return DispatchOutcome.from_record(self._mark_sent(record, result))

        record.provider_name = result.provider_name
        decision = self.retry_scheduler.schedule_retry(
            record, result.error_code, result.error_message
        )
        record.attempts = decision.attempts

        if decision.retry:
            record.last_error_code = result.error_code
            record.last_error_message = result.error_message
            record.next_attempt_at = decision.next_attempt_at
            record = self.store.update(record)
            return DispatchOutcome.from_record(record)

        if decision.error_class == ErrorClass.TRANSIENT:
            logger.warning(
                "notification_dead_lettered",
                attempts=record.attempts,
                error_code=result.error_code,
            )
        record = self._fail(record, result.error_code, result.error_message)
        return DispatchOutcome.from_record(record)

    def _mark_sent(
        self,
        record: NotificationRecord,
        result: DeliveryResult,
        count_attempt: bool = True,
    ) -> NotificationRecord:
        record.status = RecordStatus.SENT
        if count_attempt:
            record.attempts += 1
        record.sent_at = self._clock()
        record.provider_name = result.provider_name
        record.provider_message_id = result.provider_message_id
        record.in_lane = False
        record.next_attempt_at = None
        record.last_error_code = None
        record.last_error_message = None
        record.cost_micros = self._record_cost(record)
        record = self.store.update(record)
        logger.info(
            "notification_sent",
            provider=record.provider_name,
            provider_message_id=record.provider_message_id,
            attempts=record.attempts,
        )
        self._emit(dispatch_events.NOTIFICATION_SENT, record)
        return record

    def _fail(
        self,
        record: NotificationRecord,
        error_code: Optional[str],
        error_message: Optional[str],
    ) -> NotificationRecord:
        record.status = RecordStatus.FAILED
        record.in_lane = False
        record.next_attempt_at = None
        record.last_error_code = error_code
        record.last_error_message = error_message
        record = self.store.update(record)
        logger.info("notification_failed", error_code=error_code, attempts=record.attempts)
        self._emit(dispatch_events.NOTIFICATION_FAILED, record)
        if error_code in errors.CREDENTIAL_ERROR_CODES:
            # handled by the device registry, off the delivery path
            self.events.dispatch_background(
                dispatch_events.record_event(
                    dispatch_events.DEVICE_TOKEN_INVALIDATED,
                    record,
                    {"device_token": record.intent.recipient},
                )
            )
        return record

    def _record_cost(self, record: NotificationRecord) -> int:
        intent = record.intent
        try:
            return self.budget.record_cost(
                intent.tenant_id,
                intent.service_origin,
                intent.channel,
                unit_count=record.unit_count,
            )
        except BudgetStoreError as e:
            logger.error(
                "budget_cost_not_recorded",
                record_id=record.id,
                unit_count=record.unit_count,
                error=str(e),
            )
            return 0

    def _emit(self, event_type: str, record: NotificationRecord, extra=None) -> None:
        self.events.dispatch(dispatch_events.record_event(event_type, record, extra))
