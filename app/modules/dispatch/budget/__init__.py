"""Monthly budget enforcement per tenant, service and channel."""

from modules.dispatch.budget.costs import (
    COST_MICROS_PER_UNIT,
    count_sms_segments,
    estimate_cost_micros,
    unit_count,
)
from modules.dispatch.budget.enforcer import (
    BUDGET_EXCEEDED,
    BudgetCheckResult,
    BudgetEnforcer,
    BudgetLimitRegistry,
    BudgetUtilization,
)
from modules.dispatch.budget.ledger import (
    AlertThreshold,
    BudgetLedger,
    BudgetLedgerStore,
    DynamoDBBudgetLedgerStore,
    InMemoryBudgetLedgerStore,
    billing_period,
)
from modules.dispatch.budget.monitor import BudgetAlert, BudgetMonitor, BudgetMonitorStats

__all__ = [
    "COST_MICROS_PER_UNIT",
    "count_sms_segments",
    "estimate_cost_micros",
    "unit_count",
    "BUDGET_EXCEEDED",
    "BudgetCheckResult",
    "BudgetEnforcer",
    "BudgetLimitRegistry",
    "BudgetUtilization",
    "AlertThreshold",
    "BudgetLedger",
    "BudgetLedgerStore",
    "DynamoDBBudgetLedgerStore",
    "InMemoryBudgetLedgerStore",
    "billing_period",
    "BudgetAlert",
    "BudgetMonitor",
    "BudgetMonitorStats",
]
