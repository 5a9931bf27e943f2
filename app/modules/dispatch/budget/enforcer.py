"""Budget enforcement.

Admission compares current-month utilization of the (tenant, service,
channel) ledger with its monthly limit. Below 100% everything is allowed.
At or above 100% HIGH and URGENT requests still go through with a warning
while NORMAL and LOW are denied. Spend is recorded only after a provider
accepted the message.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

import structlog

from modules.dispatch.budget.costs import estimate_cost_micros
from modules.dispatch.budget.ledger import BudgetLedgerStore, billing_period
from modules.dispatch.domain.models import utc_now
from modules.dispatch.domain.types import Channel, Priority
from modules.dispatch.rate_limit.rules import WILDCARD

logger = structlog.get_logger()

BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


@dataclass(frozen=True)
class BudgetCheckResult:
    """Outcome of a budget check.

    ``limit_micros`` None means the ledger has no limit configured.
    """

    allowed: bool
    utilization: float = 0.0
    reason: Optional[str] = None
    limit_micros: Optional[int] = None
    current_spend_micros: int = 0
    estimated_cost_micros: int = 0
    warning: Optional[str] = None

    @property
    def remaining_micros(self) -> Optional[int]:
        if self.limit_micros is None:
            return None
        return max(0, self.limit_micros - self.current_spend_micros)


@dataclass(frozen=True)
class BudgetUtilization:
    tenant_id: str
    service_origin: str
    channel: Channel
    period: str
    spend_micros: int
    limit_micros: Optional[int]

    @property
    def ratio(self) -> float:
        if not self.limit_micros:
            return 0.0
        return self.spend_micros / self.limit_micros


LimitKey = Tuple[str, str, Channel]


class BudgetLimitRegistry:
    """Monthly limits per (tenant, service, channel).

    Lookup falls back from the exact service to the tenant's "*" entry, then
    to ``default_limit_micros``. A limit of 0 or None means unlimited.
    """

    def __init__(self, default_limit_micros: int = 0):
        self.default_limit_micros = default_limit_micros
        self._limits: Dict[LimitKey, int] = {}
        self._lock = threading.Lock()

    def set_limit(
        self, tenant_id: str, service_origin: str, channel: Channel, limit_micros: int
    ) -> None:
        if limit_micros < 0:
            raise ValueError("limit cannot be negative")
        with self._lock:
            self._limits[(tenant_id, service_origin, channel)] = limit_micros

    def resolve(
        self, tenant_id: str, service_origin: str, channel: Channel
    ) -> Optional[int]:
        for key in (
            (tenant_id, service_origin, channel),
            (tenant_id, WILDCARD, channel),
        ):
            if key in self._limits:
                return self._limits[key] or None
        return self.default_limit_micros or None

    def configured(self) -> Dict[LimitKey, int]:
        with self._lock:
            return dict(self._limits)


class BudgetEnforcer:
    """Checks and records monthly notification spend.

    Args:
        store: Ledger store with atomic increments
        limits: Monthly limit configuration
        warning_threshold: Utilization at which allowed requests carry a warning
        clock: UTC datetime clock, decides the billing period
    """

    def __init__(
        self,
        store: BudgetLedgerStore,
        limits: Optional[BudgetLimitRegistry] = None,
        warning_threshold: float = 0.8,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.limits = limits or BudgetLimitRegistry()
        self.warning_threshold = warning_threshold
        self._clock = clock

    def check_budget(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        priority: Priority,
        unit_count: int = 1,
    ) -> BudgetCheckResult:
        """Decide whether a message may be sent under the monthly budget.

        Raises:
            BudgetStoreError: If the ledger cannot be read
        """
        estimated = estimate_cost_micros(channel, unit_count)
        limit = self.limits.resolve(tenant_id, service_origin, channel)
        if limit is None:
            return BudgetCheckResult(allowed=True, estimated_cost_micros=estimated)

        ledger = self.store.get(
            tenant_id, service_origin, channel, billing_period(self._clock())
        )
        spend = ledger.accumulated_micros if ledger else 0
        utilization = spend / limit

        result = dict(
            utilization=utilization,
            limit_micros=limit,
            current_spend_micros=spend,
            estimated_cost_micros=estimated,
        )

        if utilization < 1.0:
            warning = None
            if utilization >= self.warning_threshold:
                warning = f"Budget {utilization:.0%} used for {channel.value}"
            return BudgetCheckResult(allowed=True, warning=warning, **result)

        if priority.overrides_budget:
            logger.warning(
                "budget_exceeded_priority_override",
                tenant_id=tenant_id,
                service_origin=service_origin,
                channel=channel.value,
                priority=priority.value,
                utilization=round(utilization, 4),
            )
            return BudgetCheckResult(
                allowed=True,
                warning=(
                    f"Budget exhausted ({utilization:.0%}) for {channel.value}; "
                    f"sent because priority is {priority.value}"
                ),
                **result,
            )

        logger.info(
            "budget_denied",
            tenant_id=tenant_id,
            service_origin=service_origin,
            channel=channel.value,
            utilization=round(utilization, 4),
        )
        return BudgetCheckResult(allowed=False, reason=BUDGET_EXCEEDED, **result)

    def record_cost(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        unit_count: int = 1,
    ) -> int:
        """Add the cost of a provider-accepted message to the ledger.

        Returns the cost recorded in micros. Free channels do not touch the
        store.

        Raises:
            BudgetStoreError: If the ledger cannot be updated
        """
        cost = estimate_cost_micros(channel, unit_count)
        if cost == 0:
            return 0
        period = billing_period(self._clock())
        total = self.store.add_cost(tenant_id, service_origin, channel, period, cost)
        logger.debug(
            "budget_cost_recorded",
            tenant_id=tenant_id,
            service_origin=service_origin,
            channel=channel.value,
            cost_micros=cost,
            period=period,
            total_micros=total,
        )
        return cost

    def get_utilization(
        self, tenant_id: str, service_origin: str, channel: Channel
    ) -> BudgetUtilization:
        period = billing_period(self._clock())
        ledger = self.store.get(tenant_id, service_origin, channel, period)
        return BudgetUtilization(
            tenant_id=tenant_id,
            service_origin=service_origin,
            channel=channel,
            period=period,
            spend_micros=ledger.accumulated_micros if ledger else 0,
            limit_micros=self.limits.resolve(tenant_id, service_origin, channel),
        )
