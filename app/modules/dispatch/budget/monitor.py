"""Periodic budget utilization scan.

Publishes ``budget.threshold_reached`` once per ledger and threshold for the
billing month. The one-shot flag lives on the ledger row so that several
monitor instances never alert twice.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from infrastructure.events import Event, EventBus
from infrastructure.logging import get_module_logger
from modules.dispatch.budget.enforcer import BudgetLimitRegistry
from modules.dispatch.budget.ledger import (
    AlertThreshold,
    BudgetLedger,
    BudgetLedgerStore,
    billing_period,
)
from modules.dispatch.domain.models import utc_now
from modules.dispatch.events import BUDGET_THRESHOLD_REACHED

logger = get_module_logger()


@dataclass
class BudgetAlert:
    ledger: BudgetLedger
    threshold: AlertThreshold
    utilization: float
    limit_micros: int


@dataclass
class BudgetMonitorStats:
    scanned: int = 0
    alerts: List[BudgetAlert] = field(default_factory=list)


class BudgetMonitor:
    """Scans the current month's ledgers and raises threshold alerts."""

    def __init__(
        self,
        store: BudgetLedgerStore,
        limits: BudgetLimitRegistry,
        events: Optional[EventBus] = None,
        warning_threshold: float = 0.8,
        clock=utc_now,
    ):
        self.store = store
        self.limits = limits
        self.events = events
        self.warning_threshold = warning_threshold
        self._clock = clock

    def run(self, period: Optional[str] = None) -> BudgetMonitorStats:
        """Scan all ledgers of ``period`` (default: current month).

        Raises:
            BudgetStoreError: If the ledgers cannot be listed
        """
        period = period or billing_period(self._clock())
        stats = BudgetMonitorStats()

        for ledger in self.store.list_ledgers(period):
            stats.scanned += 1
            limit = self.limits.resolve(
                ledger.tenant_id, ledger.service_origin, ledger.channel
            )
            if limit is None:
                continue
            utilization = ledger.accumulated_micros / limit
            threshold = self._crossed(ledger, utilization)
            if threshold is None:
                continue
            if not self.store.mark_alert_sent(
                ledger.tenant_id,
                ledger.service_origin,
                ledger.channel,
                ledger.period,
                threshold,
            ):
                continue
            if threshold == AlertThreshold.EXHAUSTED and not ledger.alert_80_sent:
                # the exhausted alert supersedes a warning not yet sent
                self.store.mark_alert_sent(
                    ledger.tenant_id,
                    ledger.service_origin,
                    ledger.channel,
                    ledger.period,
                    AlertThreshold.WARNING,
                )
            alert = BudgetAlert(ledger, threshold, utilization, limit)
            stats.alerts.append(alert)
            self._publish(alert)

        logger.info(
            "budget_monitor_completed",
            period=period,
            scanned=stats.scanned,
            alerts=len(stats.alerts),
        )
        return stats

    def _crossed(
        self, ledger: BudgetLedger, utilization: float
    ) -> Optional[AlertThreshold]:
        if utilization >= 1.0 and not ledger.alert_100_sent:
            return AlertThreshold.EXHAUSTED
        if utilization >= self.warning_threshold and not ledger.alert_80_sent:
            return AlertThreshold.WARNING
        return None

    def _publish(self, alert: BudgetAlert) -> None:
        ledger = alert.ledger
        logger.warning(
            "budget_threshold_reached",
            tenant_id=ledger.tenant_id,
            service_origin=ledger.service_origin,
            channel=ledger.channel.value,
            period=ledger.period,
            threshold=alert.threshold.name.lower(),
            utilization=round(alert.utilization, 4),
        )
        if self.events is None:
            return
        self.events.dispatch(
            Event(
                event_type=BUDGET_THRESHOLD_REACHED,
                tenant_id=ledger.tenant_id,
                metadata={
                    "service_origin": ledger.service_origin,
                    "channel": ledger.channel.value,
                    "period": ledger.period,
                    "threshold": alert.threshold.name.lower(),
                    "utilization": alert.utilization,
                    "spend_micros": ledger.accumulated_micros,
                    "limit_micros": alert.limit_micros,
                },
            )
        )
