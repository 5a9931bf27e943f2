"""Notification record store.

Persistence of NotificationRecords is owned by an external collaborator;
this module defines the contract the orchestrator needs and an in-process
implementation. The store hands out copies, so a caller only changes stored
state through ``update``.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Protocol, Tuple

from modules.dispatch.domain.errors import RecordNotFoundError
from modules.dispatch.domain.models import (
    NotificationIntent,
    NotificationRecord,
    utc_now,
)
from modules.dispatch.domain.types import RecordStatus

DedupKey = Tuple[str, str]


class NotificationStore(Protocol):
    def create_or_get(
        self, intent: NotificationIntent
    ) -> Tuple[NotificationRecord, bool]:
        """Create a QUEUED record, or return the record already created for
        the intent's correlation key inside the dedup window.

        Returns:
            (record, created)
        """
        ...

    def get(self, record_id: str) -> NotificationRecord: ...

    def update(self, record: NotificationRecord) -> NotificationRecord: ...

    def list_by_status(self, status: RecordStatus) -> List[NotificationRecord]: ...

    def fetch_due(self, limit: int) -> List[NotificationRecord]: ...

    def claim_record(self, record_id: str, worker_id: str, lease_seconds: int) -> bool: ...

    def release_claim(self, record_id: str, worker_id: str) -> None: ...


@dataclass
class _Claim:
    worker_id: str
    expires_at: datetime


class InMemoryNotificationStore:
    """Thread-safe record store for a single process.

    Correlation keys are scoped per tenant.
    """

    def __init__(
        self,
        dedup_window_seconds: int = 86400,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.dedup_window = timedelta(seconds=dedup_window_seconds)
        self._clock = clock
        self._records: Dict[str, NotificationRecord] = {}
        self._by_correlation: Dict[DedupKey, str] = {}
        self._claims: Dict[str, _Claim] = {}
        self._lock = threading.Lock()

    def create_or_get(
        self, intent: NotificationIntent
    ) -> Tuple[NotificationRecord, bool]:
        key = (intent.tenant_id, intent.correlation_key)
        now = self._clock()
        with self._lock:
            existing_id = self._by_correlation.get(key)
            if existing_id is not None:
                existing = self._records[existing_id]
                if now - existing.created_at < self.dedup_window:
                    return existing.model_copy(deep=True), False

            record = NotificationRecord(intent=intent, created_at=now, updated_at=now)
            self._records[record.id] = record
            self._by_correlation[key] = record.id
            return record.model_copy(deep=True), True

    def get(self, record_id: str) -> NotificationRecord:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            return record.model_copy(deep=True)

    def update(self, record: NotificationRecord) -> NotificationRecord:
        with self._lock:
            if record.id not in self._records:
                raise RecordNotFoundError(record.id)
            stored = record.model_copy(deep=True, update={"updated_at": self._clock()})
            self._records[record.id] = stored
            return stored.model_copy(deep=True)

    def list_by_status(self, status: RecordStatus) -> List[NotificationRecord]:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in self._records.values()
                if r.status == status
            ]

    def fetch_due(self, limit: int) -> List[NotificationRecord]:
        """QUEUED records whose next attempt is due and that nobody holds."""
        now = self._clock()
        with self._lock:
            due = [
                r
                for r in self._records.values()
                if r.status == RecordStatus.QUEUED
                and r.next_attempt_at is not None
                and r.next_attempt_at <= now
                and not self._is_claimed(r.id, now)
            ]
            due.sort(key=lambda r: r.next_attempt_at)
            return [r.model_copy(deep=True) for r in due[:limit]]

    def claim_record(self, record_id: str, worker_id: str, lease_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            if record_id not in self._records:
                return False
            claim = self._claims.get(record_id)
            if claim is not None and claim.expires_at > now and claim.worker_id != worker_id:
                return False
            self._claims[record_id] = _Claim(
                worker_id=worker_id, expires_at=now + timedelta(seconds=lease_seconds)
            )
            return True

    def release_claim(self, record_id: str, worker_id: str) -> None:
        with self._lock:
            claim = self._claims.get(record_id)
            if claim is not None and claim.worker_id == worker_id:
                del self._claims[record_id]

    def _is_claimed(self, record_id: str, now: datetime) -> bool:
        claim = self._claims.get(record_id)
        return claim is not None and claim.expires_at > now
