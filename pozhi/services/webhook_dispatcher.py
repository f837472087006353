import logging
from enum import Enum
from typing import Any, Optional

from pozhi.services.payment_coordinator import PaymentCoordinator
from pozhi.services.stores import WebhookEventLog

logger = logging.getLogger(__name__)


class WebhookEventType(str, Enum):
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "WebhookEventType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class WebhookDispatcher:
    """
    Routes verified processor events to the coordinator.

    Signature verification happens before an event gets here. Event ids already
    handled are skipped, since the processor delivers at least once.
    """

    def __init__(self, coordinator: PaymentCoordinator, event_log: Optional[WebhookEventLog] = None):
        self.coordinator = coordinator
        self.event_log = event_log

    def dispatch(self, event: Any) -> WebhookEventType:
        event_id = event.get("id")
        raw_type = event.get("type")
        event_type = WebhookEventType.parse(raw_type)

        if event_id and self.event_log is not None and self.event_log.seen(event_id):
            logger.info(f"Webhook event {event_id} already processed, skipping")
            return event_type

        intent = (event.get("data") or {}).get("object") or {}

        match event_type:
            case WebhookEventType.PAYMENT_INTENT_SUCCEEDED:
                self.coordinator.handle_payment_succeeded(intent)
            case WebhookEventType.PAYMENT_INTENT_FAILED:
                self.coordinator.handle_payment_failed(intent)
            case WebhookEventType.PAYMENT_INTENT_CANCELED:
                # the next begin_payment replaces a canceled intent
                logger.info(f"Payment intent {intent.get('id')} canceled upstream")
            case WebhookEventType.UNKNOWN:
                logger.info(f"Unhandled webhook event: {raw_type}")

        if event_id and self.event_log is not None:
            self.event_log.record(event_id, raw_type or event_type.value)
        return event_type
