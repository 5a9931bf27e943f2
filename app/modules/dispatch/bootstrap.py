"""Construction of the dispatch engine from settings.

All collaborators are built here and passed down explicitly; nothing in the
engine looks them up through module globals.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from infrastructure.configuration import Settings
from infrastructure.events import EventBus
from infrastructure.logging import get_module_logger
from infrastructure.resilience import CircuitBreakerRegistry, RetryConfig, RetryWorker
from integrations.cache import get_redis_client
from modules.dispatch.budget import (
    BudgetEnforcer,
    BudgetLedgerStore,
    BudgetLimitRegistry,
    BudgetMonitor,
    DynamoDBBudgetLedgerStore,
    InMemoryBudgetLedgerStore,
)
from modules.dispatch.domain.types import Channel
from modules.dispatch.lanes import DeliveryLanes, LaneWorkerPool
from modules.dispatch.orchestrator import DispatchOrchestrator
from modules.dispatch.pickup import PICKER_WORKER_ID, NotificationRetryProcessor
from modules.dispatch.providers import (
    ChannelGateway,
    InAppProvider,
    NotifyEmailProvider,
    NotifySmsProvider,
    ProviderClient,
    ProviderGateway,
    ProviderTable,
    PushGatewayProvider,
)
from modules.dispatch.rate_limit import (
    InMemoryTokenBucketStore,
    RateLimiter,
    RateLimitRuleRegistry,
    RedisTokenBucketStore,
    TokenBucketStore,
)
from modules.dispatch.records import InMemoryNotificationStore
from modules.dispatch.retry import RetryPolicyRegistry, RetryScheduler
from modules.dispatch.routing import DeliveryRouter

logger = get_module_logger()


@dataclass
class DispatchService:
    """Everything the process needs to run the engine."""

    orchestrator: DispatchOrchestrator
    lanes: DeliveryLanes
    lane_workers: LaneWorkerPool
    retry_worker: RetryWorker
    budget_monitor: BudgetMonitor
    providers: ProviderTable
    breakers: CircuitBreakerRegistry
    rate_limit_rules: RateLimitRuleRegistry
    budget_limits: BudgetLimitRegistry
    retry_policies: RetryPolicyRegistry

    def start(self) -> None:
        self.lane_workers.start()

    def stop(self) -> None:
        self.lane_workers.stop()
        self.orchestrator.shutdown(wait=False)


def build_provider_clients(
    settings: Settings, events: EventBus
) -> Dict[Channel, List[ProviderClient]]:
    """Ranked provider clients per channel, primary first."""
    clients: Dict[Channel, List[ProviderClient]] = {channel: [] for channel in Channel}
    if settings.notify.configured:
        clients[Channel.SMS].append(NotifySmsProvider())
        clients[Channel.EMAIL].append(NotifyEmailProvider())
    else:
        logger.warning("provider_not_configured", provider="notify")
    if settings.push.PUSH_GATEWAY_URL:
        clients[Channel.PUSH].append(PushGatewayProvider())
    else:
        logger.warning("provider_not_configured", provider="push-gateway")
    clients[Channel.IN_APP].append(InAppProvider(events))
    return clients


def build_provider_table(
    clients: Dict[Channel, List[ProviderClient]], breakers: CircuitBreakerRegistry
) -> ProviderTable:
    table = ProviderTable()
    for channel, ranked in clients.items():
        table.register(
            ChannelGateway(
                channel,
                [
                    ProviderGateway(client, breakers.get_or_create(client.name))
                    for client in ranked
                ],
            )
        )
    return table


def _bucket_store(settings: Settings) -> TokenBucketStore:
    if settings.rate_limit.backend == "redis":
        return RedisTokenBucketStore(get_redis_client())
    return InMemoryTokenBucketStore()


def _ledger_store(settings: Settings) -> BudgetLedgerStore:
    if settings.budget.backend == "dynamodb":
        return DynamoDBBudgetLedgerStore(settings.aws.BUDGET_LEDGER_TABLE)
    return InMemoryBudgetLedgerStore()


def build_dispatch_service(
    settings: Settings,
    events: EventBus,
    breakers: CircuitBreakerRegistry,
    provider_clients: Optional[Dict[Channel, List[ProviderClient]]] = None,
) -> DispatchService:
    """Wire the dispatch engine.

    Args:
        settings: Application settings
        events: Bus receiving transition and budget events
        breakers: Registry providing one breaker per provider
        provider_clients: Ranked clients per channel; built from settings
            when omitted
    """
    if settings.dispatch.store_backend != "memory":
        raise ValueError(
            f"Unsupported record store backend: {settings.dispatch.store_backend}"
        )

    clients = provider_clients or build_provider_clients(settings, events)
    providers = build_provider_table(clients, breakers)

    rules = RateLimitRuleRegistry()
    limits = BudgetLimitRegistry(settings.budget.default_monthly_limit_micros)
    policies = RetryPolicyRegistry()
    ledger_store = _ledger_store(settings)
    lanes = DeliveryLanes()

    orchestrator = DispatchOrchestrator(
        store=InMemoryNotificationStore(settings.dispatch.dedup_window_seconds),
        rate_limiter=RateLimiter(
            _bucket_store(settings),
            rules,
            admin_scope=settings.rate_limit.admin_scope,
            enabled=settings.rate_limit.enabled,
        ),
        budget=BudgetEnforcer(
            ledger_store, limits, warning_threshold=settings.budget.warning_threshold
        ),
        router=DeliveryRouter(),
        providers=providers,
        retry_scheduler=RetryScheduler(policies),
        lanes=lanes,
        events=events,
        sync_workers=settings.dispatch.sync_workers,
        lane_workers=settings.dispatch.lane_workers,
        lane_recovery_seconds=settings.dispatch.lane_recovery_seconds,
        budget_retry_seconds=settings.retry.pickup_interval_seconds,
        claim_lease_seconds=settings.retry.claim_lease_seconds,
    )

    retry_worker = RetryWorker(
        source=orchestrator.store,
        processor=NotificationRetryProcessor(orchestrator, PICKER_WORKER_ID),
        config=RetryConfig(
            batch_size=settings.retry.batch_size,
            claim_lease_seconds=settings.retry.claim_lease_seconds,
        ),
        worker_id=PICKER_WORKER_ID,
    )

    logger.info(
        "dispatch_service_built",
        rate_limit_backend=settings.rate_limit.backend,
        budget_backend=settings.budget.backend,
        circuit_breaker_backend=settings.circuit_breaker.backend,
        providers={
            channel.value: [client.name for client in ranked]
            for channel, ranked in clients.items()
        },
    )

    return DispatchService(
        orchestrator=orchestrator,
        lanes=lanes,
        lane_workers=LaneWorkerPool(
            lanes, orchestrator.deliver, workers=settings.dispatch.lane_workers
        ),
        retry_worker=retry_worker,
        budget_monitor=BudgetMonitor(
            ledger_store,
            limits,
            events=events,
            warning_threshold=settings.budget.warning_threshold,
        ),
        providers=providers,
        breakers=breakers,
        rate_limit_rules=rules,
        budget_limits=limits,
        retry_policies=policies,
    )
