"""Monthly budget ledgers.

A ledger row is keyed by (tenant, service, channel, period) where period is
the UTC billing month "YYYY-MM". A new month is a new row, so the one-shot
alert flags reset naturally at the month boundary. Spend only moves through
``add_cost``, an atomic increment.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

from infrastructure.logging import get_module_logger
from integrations.aws import dynamodb
from modules.dispatch.domain.errors import BudgetStoreError
from modules.dispatch.domain.types import Channel

logger = get_module_logger()


class AlertThreshold(Enum):
    WARNING = "alert_80_sent"
    EXHAUSTED = "alert_100_sent"


def billing_period(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


@dataclass(frozen=True)
class BudgetLedger:
    tenant_id: str
    service_origin: str
    channel: Channel
    period: str
    accumulated_micros: int = 0
    alert_80_sent: bool = False
    alert_100_sent: bool = False

    @property
    def key(self) -> Tuple[str, str, Channel, str]:
        return (self.tenant_id, self.service_origin, self.channel, self.period)


class BudgetLedgerStore(Protocol):
    def get(
        self, tenant_id: str, service_origin: str, channel: Channel, period: str
    ) -> Optional[BudgetLedger]: ...

    def add_cost(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        micros: int,
    ) -> int:
        """Atomically add ``micros`` and return the new accumulated total."""
        ...

    def mark_alert_sent(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        threshold: AlertThreshold,
    ) -> bool:
        """Set a one-shot alert flag; True only for the caller that set it."""
        ...

    def list_ledgers(self, period: str) -> List[BudgetLedger]: ...


class InMemoryBudgetLedgerStore:
    """Ledger store for a single process."""

    def __init__(self):
        self._ledgers: Dict[Tuple[str, str, Channel, str], BudgetLedger] = {}
        self._lock = threading.Lock()

    def get(
        self, tenant_id: str, service_origin: str, channel: Channel, period: str
    ) -> Optional[BudgetLedger]:
        with self._lock:
            return self._ledgers.get((tenant_id, service_origin, channel, period))

    def add_cost(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        micros: int,
    ) -> int:
        if micros < 0:
            raise ValueError("cost cannot be negative")
        key = (tenant_id, service_origin, channel, period)
        with self._lock:
            ledger = self._ledgers.get(key) or BudgetLedger(*key)
            ledger = replace(
                ledger, accumulated_micros=ledger.accumulated_micros + micros
            )
            self._ledgers[key] = ledger
            return ledger.accumulated_micros

    def mark_alert_sent(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        threshold: AlertThreshold,
    ) -> bool:
        key = (tenant_id, service_origin, channel, period)
        with self._lock:
            ledger = self._ledgers.get(key) or BudgetLedger(*key)
            if getattr(ledger, threshold.value):
                return False
            self._ledgers[key] = replace(ledger, **{threshold.value: True})
            return True

    def list_ledgers(self, period: str) -> List[BudgetLedger]:
        with self._lock:
            return [ledger for ledger in self._ledgers.values() if ledger.period == period]


class DynamoDBBudgetLedgerStore:
    """Ledger store backed by a DynamoDB table.

    Table schema: partition key ``ledger_key`` ("tenant#service#channel"),
    sort key ``period``. Spend uses ``ADD`` so concurrent instances never
    lose increments; alert flags use a conditional update.
    """

    def __init__(self, table_name: str):
        self.table_name = table_name

    @staticmethod
    def _key(
        tenant_id: str, service_origin: str, channel: Channel, period: str
    ) -> dict:
        return {
            "ledger_key": {"S": f"{tenant_id}#{service_origin}#{channel.value}"},
            "period": {"S": period},
        }

    @staticmethod
    def _from_item(item: dict) -> BudgetLedger:
        tenant_id, service_origin, channel = item["ledger_key"]["S"].split("#", 2)
        return BudgetLedger(
            tenant_id=tenant_id,
            service_origin=service_origin,
            channel=Channel(channel),
            period=item["period"]["S"],
            accumulated_micros=int(item.get("accumulated_micros", {}).get("N", "0")),
            alert_80_sent=item.get("alert_80_sent", {}).get("BOOL", False),
            alert_100_sent=item.get("alert_100_sent", {}).get("BOOL", False),
        )

    def get(
        self, tenant_id: str, service_origin: str, channel: Channel, period: str
    ) -> Optional[BudgetLedger]:
        result = dynamodb.get_item(
            table_name=self.table_name,
            Key=self._key(tenant_id, service_origin, channel, period),
            ConsistentRead=True,
        )
        if not result.is_success:
            raise BudgetStoreError(result.message)
        item = (result.data or {}).get("Item")
        return self._from_item(item) if item else None

    def add_cost(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        micros: int,
    ) -> int:
        if micros < 0:
            raise ValueError("cost cannot be negative")
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=self._key(tenant_id, service_origin, channel, period),
            UpdateExpression="ADD accumulated_micros :cost",
            ExpressionAttributeValues={":cost": {"N": str(micros)}},
            ReturnValues="UPDATED_NEW",
        )
        if not result.is_success:
            raise BudgetStoreError(result.message)
        attributes = (result.data or {}).get("Attributes", {})
        return int(attributes.get("accumulated_micros", {}).get("N", "0"))

    def mark_alert_sent(
        self,
        tenant_id: str,
        service_origin: str,
        channel: Channel,
        period: str,
        threshold: AlertThreshold,
    ) -> bool:
        result = dynamodb.update_item(
            table_name=self.table_name,
            Key=self._key(tenant_id, service_origin, channel, period),
            UpdateExpression="SET #flag = :true",
            ConditionExpression="attribute_not_exists(#flag) OR #flag = :false",
            ExpressionAttributeNames={"#flag": threshold.value},
            ExpressionAttributeValues={":true": {"BOOL": True}, ":false": {"BOOL": False}},
        )
        if result.is_success:
            return True
        if result.error_code == "CONDITION_FAILED":
            return False
        raise BudgetStoreError(result.message)

    def list_ledgers(self, period: str) -> List[BudgetLedger]:
        result = dynamodb.scan(
            table_name=self.table_name,
            FilterExpression="#period = :period",
            ExpressionAttributeNames={"#period": "period"},
            ExpressionAttributeValues={":period": {"S": period}},
        )
        if not result.is_success:
            raise BudgetStoreError(result.message)
        return [self._from_item(item) for item in result.data or []]
