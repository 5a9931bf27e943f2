"""Unit tests for the dispatch orchestrator flows."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from infrastructure.resilience import CircuitBreaker
from modules.dispatch import events as dispatch_events
from modules.dispatch.budget import (
    BUDGET_EXCEEDED,
    BudgetEnforcer,
    BudgetLimitRegistry,
    InMemoryBudgetLedgerStore,
)
from modules.dispatch.domain import errors
from modules.dispatch.domain.errors import BudgetStoreError, InvalidTransitionError
from modules.dispatch.domain.types import (
    Channel,
    DeliveryClass,
    OutcomeStatus,
    Priority,
    RecordStatus,
)
from modules.dispatch.lanes import DeliveryLanes
from modules.dispatch.orchestrator import DispatchOrchestrator
from modules.dispatch.providers import (
    ChannelGateway,
    DeliveryResult,
    ProviderGateway,
    ProviderTable,
)
from modules.dispatch.rate_limit import (
    BucketLimit,
    InMemoryTokenBucketStore,
    RateLimiter,
    RateLimitRule,
    RateLimitRuleRegistry,
)
from modules.dispatch.records import InMemoryNotificationStore
from modules.dispatch.retry import RetryPolicy, RetryPolicyRegistry, RetryScheduler
from modules.dispatch.routing import DeliveryRouter
from tests.factories.dispatch import StubProvider

PERIOD = "2026-10"
SMS_LIMIT = 100_000


class BlockingProvider(StubProvider):
    """Provider that answers only once ``release`` is set."""

    def __init__(self, name: str, channel: Channel):
        super().__init__(name, channel)
        self.release = threading.Event()

    def send(self, request):
        self.release.wait(timeout=5)
        return super().send(request)


@pytest.fixture
def limits():
    registry = BudgetLimitRegistry()
    registry.set_limit("acme", "orders", Channel.SMS, SMS_LIMIT)
    return registry


@pytest.fixture
def ledger():
    return InMemoryBudgetLedgerStore()


@pytest.fixture
def orchestrator_factory(clock, event_bus, ledger, limits):
    """Factory wiring an orchestrator around in-memory collaborators."""
    created = []

    def _factory(
        *providers,
        rules=(),
        retry_policies=None,
        budget_store=None,
        sync_latency=None,
        sync_workers=16,
    ) -> DispatchOrchestrator:
        table = ProviderTable()
        for channel in Channel:
            gateways = [
                ProviderGateway(p, CircuitBreaker(p.name, clock=clock.epoch))
                for p in providers
                if p.channel == channel
            ]
            if gateways:
                table.register(ChannelGateway(channel, gateways))

        latencies = {DeliveryClass.SYNCHRONOUS: sync_latency} if sync_latency else None
        orchestrator = DispatchOrchestrator(
            store=InMemoryNotificationStore(clock=clock),
            rate_limiter=RateLimiter(
                InMemoryTokenBucketStore(),
                RateLimitRuleRegistry(rules),
                clock=clock.epoch,
            ),
            budget=BudgetEnforcer(budget_store or ledger, limits, clock=clock),
            router=DeliveryRouter(latencies=latencies),
            providers=table,
            retry_scheduler=RetryScheduler(
                RetryPolicyRegistry(retry_policies) if retry_policies else None,
                clock=clock,
                rng=lambda: 0.0,
            ),
            lanes=DeliveryLanes(),
            events=event_bus,
            sync_workers=sync_workers,
            clock=clock,
        )
        created.append(orchestrator)
        return orchestrator

    yield _factory
    for orchestrator in created:
        orchestrator.shutdown(wait=True)


def of_type(events, event_type):
    return [e for e in events if e.event_type == event_type]


def spend(ledger):
    entry = ledger.get("acme", "orders", Channel.SMS, PERIOD)
    return entry.accumulated_micros if entry else 0


@pytest.mark.unit
class TestSynchronousDispatch:
    def test_success_marks_sent_and_records_cost(
        self, orchestrator_factory, intent_factory, ledger, captured_events
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)

        outcome = orchestrator.dispatch(intent_factory(template_key="otp_login"))

        assert outcome.status == OutcomeStatus.SENT
        assert outcome.http_status == 200
        assert outcome.delivery_class == DeliveryClass.SYNCHRONOUS
        assert outcome.provider_message_id == "notify-sms-msg"
        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.SENT
        assert record.attempts == 1
        assert record.cost_micros == 7900
        assert spend(ledger) == 7900
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_SENT)) == 1

    def test_long_sms_is_billed_per_segment(
        self, orchestrator_factory, intent_factory, ledger
    ):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))

        outcome = orchestrator.dispatch(intent_factory(synchronous=True, body="a" * 200))

        assert orchestrator.store.get(outcome.record_id).unit_count == 2
        assert spend(ledger) == 15_800

    def test_free_channel_leaves_ledger_untouched(
        self, orchestrator_factory, intent_factory, ledger
    ):
        orchestrator = orchestrator_factory(StubProvider("push", Channel.PUSH))

        outcome = orchestrator.dispatch(
            intent_factory(channel=Channel.PUSH, template_key="driver_assigned")
        )

        assert outcome.status == OutcomeStatus.SENT
        assert ledger.list_ledgers(PERIOD) == []

    def test_provider_failure_fails_the_call(
        self, orchestrator_factory, intent_factory, captured_events
    ):
        sms = StubProvider(
            "notify-sms", Channel.SMS, DeliveryResult.failed("notify-sms", errors.PROVIDER_ERROR)
        )
        orchestrator = orchestrator_factory(sms)

        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.http_status == 502
        assert outcome.error_code == errors.PROVIDER_ERROR
        assert orchestrator.store.get(outcome.record_id).attempts == 1
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_FAILED)) == 1

    def test_timeout_fails_and_late_success_is_billed(
        self, orchestrator_factory, intent_factory, ledger
    ):
        sms = BlockingProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms, sync_latency=timedelta(milliseconds=50))

        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error_code == errors.SYNC_TIMEOUT
        assert outcome.http_status == 504
        assert spend(ledger) == 0

        sms.release.set()
        orchestrator.shutdown(wait=True)

        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.FAILED
        assert record.provider_message_id == "notify-sms-msg"
        assert record.cost_micros == 7900
        assert spend(ledger) == 7900

    def test_timed_out_send_still_waiting_for_a_thread_is_cancelled(
        self, orchestrator_factory, intent_factory, ledger
    ):
        sms = BlockingProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(
            sms, sync_latency=timedelta(milliseconds=50), sync_workers=1
        )

        first = orchestrator.dispatch(intent_factory(synchronous=True, correlation_key="a"))
        second = orchestrator.dispatch(
            intent_factory(
                synchronous=True, correlation_key="b", recipient="+15555550199"
            )
        )

        assert first.error_code == errors.SYNC_TIMEOUT
        assert second.error_code == errors.SYNC_TIMEOUT

        sms.release.set()
        orchestrator.shutdown(wait=True)

        assert [r.recipient for r in sms.requests] == ["+15555550100"]
        assert orchestrator.store.get(second.record_id).cost_micros == 0
        assert spend(ledger) == 7900


@pytest.mark.unit
class TestAdmission:
    def test_duplicate_correlation_key_returns_first_record(
        self, orchestrator_factory, intent_factory
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)

        first = orchestrator.dispatch(intent_factory(synchronous=True))
        second = orchestrator.dispatch(intent_factory(synchronous=True))

        assert second.duplicate
        assert second.record_id == first.record_id
        assert second.status == OutcomeStatus.SENT
        assert len(sms.requests) == 1

    def test_scheduled_intent_waits_for_its_time(
        self, orchestrator_factory, intent_factory, clock
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)
        send_at = clock() + timedelta(hours=1)

        outcome = orchestrator.dispatch(intent_factory(scheduled_for=send_at))

        assert outcome.status == OutcomeStatus.QUEUED
        assert orchestrator.store.get(outcome.record_id).next_attempt_at == send_at
        assert orchestrator.store.fetch_due(limit=10) == []
        assert len(orchestrator.lanes) == 0

        clock.advance(3600)
        assert [r.id for r in orchestrator.store.fetch_due(limit=10)] == [outcome.record_id]

        readmitted = orchestrator.readmit(outcome.record_id)

        assert readmitted.status == OutcomeStatus.QUEUED
        assert readmitted.delivery_class == DeliveryClass.STANDARD_QUEUE
        assert len(orchestrator.lanes) == 1
        assert sms.requests == []

    def test_quota_denial_is_terminal(self, orchestrator_factory, intent_factory):
        rule = RateLimitRule(
            channel=Channel.SMS, user=BucketLimit(capacity=1, window_seconds=60)
        )
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS), rules=[rule])
        orchestrator.dispatch(intent_factory(correlation_key="a"))

        outcome = orchestrator.dispatch(intent_factory(correlation_key="b"))

        assert outcome.status == OutcomeStatus.DENIED_QUOTA
        assert outcome.http_status == 429
        assert outcome.error_code == errors.QUOTA_EXCEEDED
        assert outcome.retry_after_seconds == pytest.approx(60.0)
        assert orchestrator.store.get(outcome.record_id).status == RecordStatus.DENIED_QUOTA

    def test_admin_override_bypasses_quota(self, orchestrator_factory, intent_factory):
        rule = RateLimitRule(
            channel=Channel.SMS, user=BucketLimit(capacity=1, window_seconds=60)
        )
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS), rules=[rule])
        orchestrator.dispatch(intent_factory(correlation_key="a"))

        outcome = orchestrator.dispatch(
            intent_factory(correlation_key="b"),
            admin_override=True,
            caller_scopes=["notifications:admin"],
        )

        assert outcome.status == OutcomeStatus.QUEUED

    def test_budget_denial_for_normal_priority(
        self, orchestrator_factory, intent_factory, ledger
    ):
        ledger.add_cost("acme", "orders", Channel.SMS, PERIOD, SMS_LIMIT)
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)

        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        assert outcome.status == OutcomeStatus.DENIED_BUDGET
        assert outcome.http_status == 402
        assert outcome.error_code == BUDGET_EXCEEDED
        assert outcome.utilization == pytest.approx(1.0)
        assert sms.requests == []

    def test_high_priority_passes_exhausted_budget(
        self, orchestrator_factory, intent_factory, ledger
    ):
        ledger.add_cost("acme", "orders", Channel.SMS, PERIOD, SMS_LIMIT)
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))

        outcome = orchestrator.dispatch(
            intent_factory(synchronous=True, priority=Priority.HIGH)
        )

        assert outcome.status == OutcomeStatus.SENT
        assert "exhausted" in outcome.warning
        assert spend(ledger) == SMS_LIMIT + 7900

    def test_budget_store_unavailable_keeps_record_queued(
        self, orchestrator_factory, intent_factory, clock
    ):
        budget_store = MagicMock()
        budget_store.get.side_effect = BudgetStoreError("ledger unreachable")
        orchestrator = orchestrator_factory(
            StubProvider("notify-sms", Channel.SMS), budget_store=budget_store
        )

        outcome = orchestrator.dispatch(intent_factory())

        assert outcome.status == OutcomeStatus.QUEUED
        assert outcome.error_code == errors.BUDGET_UNAVAILABLE
        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.QUEUED
        assert record.next_attempt_at == clock() + timedelta(seconds=60)
        assert len(orchestrator.lanes) == 0


@pytest.mark.unit
class TestQueuedDelivery:
    def test_queued_record_is_delivered_by_lane_worker(
        self, orchestrator_factory, intent_factory, clock
    ):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))

        outcome = orchestrator.dispatch(intent_factory())

        assert outcome.status == OutcomeStatus.QUEUED
        assert outcome.http_status == 202
        assert orchestrator.lanes.sizes()["standard_queue"] == 1
        record = orchestrator.store.get(outcome.record_id)
        assert record.in_lane
        assert record.next_attempt_at == clock() + timedelta(seconds=600)

        delivered = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert delivered.status == OutcomeStatus.SENT
        record = orchestrator.store.get(outcome.record_id)
        assert not record.in_lane
        assert record.next_attempt_at is None
        assert orchestrator.deliver(outcome.record_id, worker_id="w-1") is None

    def test_high_priority_uses_priority_lane(self, orchestrator_factory, intent_factory):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        orchestrator.dispatch(intent_factory(priority=Priority.URGENT))
        assert orchestrator.lanes.sizes()["priority_queue"] == 1

    def test_claimed_record_is_skipped(self, orchestrator_factory, intent_factory):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory())
        orchestrator.store.claim_record(outcome.record_id, "other", 300)

        assert orchestrator.deliver(outcome.record_id, worker_id="w-1") is None
        assert sms.requests == []

    def test_transient_failure_schedules_retry(
        self, orchestrator_factory, intent_factory, clock
    ):
        sms = StubProvider(
            "notify-sms", Channel.SMS, DeliveryResult.failed("notify-sms", errors.PROVIDER_TIMEOUT)
        )
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory())

        result = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert result.status == OutcomeStatus.RETRY_SCHEDULED
        assert result.error_code == errors.PROVIDER_TIMEOUT
        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.QUEUED
        assert record.attempts == 1
        assert record.next_attempt_at == clock() + timedelta(seconds=5)
        assert record.is_retry_pending

    def test_retries_exhausted_dead_letters(
        self, orchestrator_factory, intent_factory, clock, captured_events
    ):
        sms = StubProvider(
            "notify-sms", Channel.SMS, DeliveryResult.failed("notify-sms", errors.PROVIDER_ERROR)
        )
        orchestrator = orchestrator_factory(
            sms, retry_policies=[RetryPolicy(max_attempts=2, jitter_ms=0)]
        )
        outcome = orchestrator.dispatch(intent_factory())
        orchestrator.deliver(outcome.record_id, worker_id="w-1")
        clock.advance(5)
        orchestrator.readmit(outcome.record_id)

        result = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert result.status == OutcomeStatus.FAILED
        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.FAILED
        assert record.attempts == 2
        assert len(sms.requests) == 2
        failed = of_type(captured_events, dispatch_events.NOTIFICATION_FAILED)
        assert failed[0].metadata["attempts"] == 2

    def test_permanent_failure_is_not_retried(self, orchestrator_factory, intent_factory):
        sms = StubProvider(
            "notify-sms",
            Channel.SMS,
            DeliveryResult.failed("notify-sms", errors.INVALID_PHONE_FORMAT),
        )
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory())

        result = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert result.status == OutcomeStatus.FAILED
        assert orchestrator.store.get(outcome.record_id).attempts == 1

    def test_slow_provider_times_out_into_a_retry(self, orchestrator_factory, intent_factory):
        sms = BlockingProvider("notify-sms", Channel.SMS)
        policy = RetryPolicy(jitter_ms=0, timeout_seconds=0.05)
        orchestrator = orchestrator_factory(sms, retry_policies=[policy])
        outcome = orchestrator.dispatch(intent_factory())

        result = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert result.status == OutcomeStatus.RETRY_SCHEDULED
        assert result.error_code == errors.PROVIDER_TIMEOUT
        assert orchestrator.store.get(outcome.record_id).attempts == 1
        sms.release.set()

    def test_late_answer_settles_the_pending_retry(
        self, orchestrator_factory, intent_factory, ledger, captured_events
    ):
        sms = BlockingProvider("notify-sms", Channel.SMS)
        policy = RetryPolicy(jitter_ms=0, timeout_seconds=0.05)
        orchestrator = orchestrator_factory(sms, retry_policies=[policy])
        outcome = orchestrator.dispatch(intent_factory())
        orchestrator.deliver(outcome.record_id, worker_id="w-1")

        sms.release.set()
        orchestrator.shutdown(wait=True)

        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.SENT
        assert record.attempts == 1
        assert record.next_attempt_at is None
        assert spend(ledger) == 7900
        assert orchestrator.store.fetch_due(limit=10) == []
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_SENT)) == 1

    def test_record_readmitted_under_picker_claim_reaches_lane_worker(
        self, orchestrator_factory, intent_factory, clock
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(
            intent_factory(scheduled_for=clock() + timedelta(minutes=5))
        )
        clock.advance(300)
        assert orchestrator.store.claim_record(outcome.record_id, "retry-picker", 300)

        orchestrator.readmit(outcome.record_id, claimed_by="retry-picker")
        drained = orchestrator.lanes.drain(
            lambda rid: orchestrator.deliver(rid, worker_id="lane-worker-0")
        )
        orchestrator.store.release_claim(outcome.record_id, "retry-picker")

        assert drained == 1
        record = orchestrator.store.get(outcome.record_id)
        assert record.status == RecordStatus.SENT
        assert len(sms.requests) == 1

    def test_revoked_device_token_is_announced(
        self, orchestrator_factory, intent_factory, event_bus, captured_events
    ):
        push = StubProvider(
            "push", Channel.PUSH, DeliveryResult.failed("push", errors.DEVICE_UNREGISTERED)
        )
        orchestrator = orchestrator_factory(push)
        outcome = orchestrator.dispatch(intent_factory(channel=Channel.PUSH))

        orchestrator.deliver(outcome.record_id, worker_id="w-1")
        event_bus.shutdown(wait=True)

        invalidated = of_type(captured_events, dispatch_events.DEVICE_TOKEN_INVALIDATED)
        assert len(invalidated) == 1
        assert invalidated[0].metadata["device_token"] == "device-token-abc123"
        assert invalidated[0].record_id == outcome.record_id

    def test_channel_without_provider_fails(self, orchestrator_factory, intent_factory):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory(channel=Channel.EMAIL))

        result = orchestrator.deliver(outcome.record_id, worker_id="w-1")

        assert result.status == OutcomeStatus.FAILED
        assert result.error_code == errors.NO_PROVIDER


@pytest.mark.unit
class TestOperatorActions:
    def test_cancel_queued_record(
        self, orchestrator_factory, intent_factory, captured_events
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory())

        record = orchestrator.cancel(outcome.record_id)

        assert record.status == RecordStatus.CANCELLED
        assert orchestrator.deliver(outcome.record_id, worker_id="w-1") is None
        assert sms.requests == []
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_CANCELLED)) == 1

    def test_cancel_sent_record_is_rejected(self, orchestrator_factory, intent_factory):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        with pytest.raises(InvalidTransitionError):
            orchestrator.cancel(outcome.record_id)

    def test_cancel_during_delivery_is_rejected(self, orchestrator_factory, intent_factory):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory())
        orchestrator.store.claim_record(outcome.record_id, "lane-worker-0", 300)

        with pytest.raises(InvalidTransitionError):
            orchestrator.cancel(outcome.record_id)

    def test_manual_retry_of_failed_record(
        self, orchestrator_factory, intent_factory, clock
    ):
        sms = StubProvider(
            "notify-sms", Channel.SMS, DeliveryResult.failed("notify-sms", errors.PROVIDER_ERROR)
        )
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        record = orchestrator.manual_retry(outcome.record_id)

        assert record.status == RecordStatus.QUEUED
        assert record.attempts == 0
        assert record.last_error_code is None
        assert record.next_attempt_at == clock()
        assert [r.id for r in orchestrator.store.fetch_due(limit=10)] == [record.id]

    def test_manual_retry_requires_failed_record(self, orchestrator_factory, intent_factory):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory())

        with pytest.raises(InvalidTransitionError):
            orchestrator.manual_retry(outcome.record_id)

    def test_delivered_and_read_receipts(
        self, orchestrator_factory, intent_factory, clock, captured_events
    ):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        delivered = orchestrator.mark_delivered(outcome.record_id)
        orchestrator.mark_delivered(outcome.record_id)
        clock.advance(10)
        read = orchestrator.mark_read(outcome.record_id)
        orchestrator.mark_read(outcome.record_id)

        assert delivered.status == RecordStatus.DELIVERED
        assert read.read_at == clock()
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_DELIVERED)) == 1
        assert len(of_type(captured_events, dispatch_events.NOTIFICATION_READ)) == 1

    def test_receipts_for_unsent_record_are_rejected(
        self, orchestrator_factory, intent_factory
    ):
        orchestrator = orchestrator_factory(StubProvider("notify-sms", Channel.SMS))
        outcome = orchestrator.dispatch(intent_factory())

        with pytest.raises(InvalidTransitionError):
            orchestrator.mark_delivered(outcome.record_id)
        with pytest.raises(InvalidTransitionError):
            orchestrator.mark_read(outcome.record_id)

    def test_dead_letters_lists_failed_records(self, orchestrator_factory, intent_factory):
        sms = StubProvider(
            "notify-sms",
            Channel.SMS,
            DeliveryResult.failed("notify-sms", errors.INVALID_PHONE_FORMAT),
        )
        orchestrator = orchestrator_factory(sms)
        failed = orchestrator.dispatch(intent_factory(correlation_key="a"))
        orchestrator.deliver(failed.record_id, worker_id="w-1")
        orchestrator.dispatch(intent_factory(correlation_key="b"))

        assert [r.id for r in orchestrator.dead_letters()] == [failed.record_id]
        assert orchestrator.dead_letters(service_origin="billing") == []

    def test_readmit_of_finished_record_is_a_no_op(
        self, orchestrator_factory, intent_factory
    ):
        sms = StubProvider("notify-sms", Channel.SMS)
        orchestrator = orchestrator_factory(sms)
        outcome = orchestrator.dispatch(intent_factory(synchronous=True))

        result = orchestrator.readmit(outcome.record_id)

        assert result.status == OutcomeStatus.SENT
        assert len(sms.requests) == 1
