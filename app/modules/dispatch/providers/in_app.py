"""In-app provider.

In-app messages are handed to the real-time hub through the event bus. The
hub owns connections and persistence of the inbox, so acceptance here means
the message was published.
"""

import uuid

from infrastructure.events import Event, EventBus
from modules.dispatch.domain.types import Channel
from modules.dispatch.events import IN_APP_MESSAGE
from modules.dispatch.providers.base import DeliveryRequest, DeliveryResult


class InAppProvider:
    channel = Channel.IN_APP

    def __init__(self, events: EventBus, name: str = "in-app-hub"):
        self.name = name
        self.events = events

    def send(self, request: DeliveryRequest) -> DeliveryResult:
        message_id = uuid.uuid4().hex
        self.events.dispatch(
            Event(
                event_type=IN_APP_MESSAGE,
                record_id=request.record_id,
                metadata={
                    "message_id": message_id,
                    "user_id": request.recipient,
                    "subject": request.subject,
                    "body": request.body,
                    "data": request.metadata,
                },
            )
        )
        return DeliveryResult.accepted(self.name, message_id)

    def health_check(self) -> bool:
        return True
