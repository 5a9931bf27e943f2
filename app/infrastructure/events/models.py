"""Event models for the dispatch event bus."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4


@dataclass
class Event:
    """Event raised by the dispatch engine.

    Attributes:
        event_type: Dotted event name (e.g. 'notification.sent').
        timestamp: When the event was created (UTC).
        correlation_id: Identifier tying the event to a notification intent.
        tenant_id: Tenant the event belongs to, when known.
        record_id: Notification record the event describes, when known.
        metadata: Event specific payload.
    """

    event_type: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str = field(default_factory=lambda: uuid4().hex)
    tenant_id: Optional[str] = None
    record_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "tenant_id": self.tenant_id,
            "record_id": self.record_id,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            event_type=data["event_type"],
            timestamp=timestamp or datetime.now(timezone.utc),
            correlation_id=data.get("correlation_id") or uuid4().hex,
            tenant_id=data.get("tenant_id"),
            record_id=data.get("record_id"),
            metadata=data.get("metadata", {}),
        )
