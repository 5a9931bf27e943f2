"""Event types published by the dispatch engine."""

from typing import Any, Dict, Optional

from infrastructure.events import Event
from modules.dispatch.domain.models import NotificationRecord

NOTIFICATION_SENT = "notification.sent"
NOTIFICATION_DELIVERED = "notification.delivered"
NOTIFICATION_READ = "notification.read"
NOTIFICATION_FAILED = "notification.failed"
NOTIFICATION_CANCELLED = "notification.cancelled"
BUDGET_THRESHOLD_REACHED = "budget.threshold_reached"
DEVICE_TOKEN_INVALIDATED = "device.token_invalidated"
IN_APP_MESSAGE = "in_app.message"


def record_event(
    event_type: str,
    record: NotificationRecord,
    extra: Optional[Dict[str, Any]] = None,
) -> Event:
    """Build an event describing a record transition."""
    metadata: Dict[str, Any] = {
        "status": record.status.value,
        "channel": record.channel.value,
        "service_origin": record.intent.service_origin,
        "user_id": record.intent.user_id,
        "attempts": record.attempts,
        "provider": record.provider_name,
        "provider_message_id": record.provider_message_id,
        "error_code": record.last_error_code,
    }
    if extra:
        metadata.update(extra)
    return Event(
        event_type=event_type,
        correlation_id=record.correlation_key,
        tenant_id=record.tenant_id,
        record_id=record.id,
        metadata=metadata,
    )
