"""
Payment processor clients.

``StripeGateway`` talks to the Stripe API; ``MockPaymentGateway`` keeps intents in
process for local development (``PAYMENT_MODE=mock``) and tests. Both verify
webhook signatures with the Stripe library, so a mock deployment still rejects
unsigned callbacks.
"""
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe

from pozhi.core import config
from pozhi.core.errors import SignatureInvalid

logger = logging.getLogger(__name__)

# Maximum age of a signed webhook, as in the Stripe libraries
WEBHOOK_TOLERANCE_SECONDS = 300


class IntentStatus:
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


@dataclass
class PaymentIntentData:
    id: str
    status: str
    client_secret: str
    amount: int
    currency: str


class PaymentGatewayError(Exception):
    """The processor rejected a call or could not be reached."""


class IdempotencyConflict(PaymentGatewayError):
    """An idempotency key was reused with different request parameters."""


class PaymentGateway:
    def __init__(self, webhook_secret: str):
        self.webhook_secret = webhook_secret

    def create_intent(
        self, amount: int, currency: str, metadata: Dict[str, str], idempotency_key: Optional[str] = None
    ) -> PaymentIntentData:
        raise NotImplementedError

    def retrieve_intent(self, intent_id: str) -> PaymentIntentData:
        raise NotImplementedError

    def cancel_intent(self, intent_id: str) -> PaymentIntentData:
        raise NotImplementedError

    def construct_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """
        Verify ``sig_header`` against the exact raw request body and return the parsed event.
        """
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(payload, sig_header, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS)
            return json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise SignatureInvalid(f"Invalid signature: {e}")
        except ValueError as e:
            logger.error(f"Webhook payload could not be parsed: {e}")
            raise SignatureInvalid(f"Invalid payload: {e}")


def _from_stripe(intent: Any) -> PaymentIntentData:
    return PaymentIntentData(
        id=intent.id,
        status=intent.status,
        client_secret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
    )


class StripeGateway(PaymentGateway):
    def __init__(self, webhook_secret: str, description: str = config.PAYMENT_DESCRIPTION):
        super().__init__(webhook_secret)
        self.description = description

    def create_intent(self, amount, currency, metadata, idempotency_key=None):
        params = {
            "amount": amount,
            "currency": currency.lower(),
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
            "description": self.description,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.IdempotencyError as e:
            logger.error(f"Idempotency key {idempotency_key} reused with different parameters: {e}")
            raise IdempotencyConflict(str(e)) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe refused to create a payment intent: {e}")
            raise PaymentGatewayError(getattr(e, "user_message", None) or str(e)) from e
        return _from_stripe(intent)

    def retrieve_intent(self, intent_id):
        try:
            return _from_stripe(stripe.PaymentIntent.retrieve(intent_id))
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e

    def cancel_intent(self, intent_id):
        try:
            return _from_stripe(stripe.PaymentIntent.cancel(intent_id))
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e


class MockPaymentGateway(PaymentGateway):
    """
    In-process stand-in for Stripe. No money moves; ids look like ``pi_mock_<hex>``.
    Honours idempotency keys the way Stripe does: the same key with the same parameters
    returns the same intent, the same key with different parameters is refused.
    """

    def __init__(self, webhook_secret: str):
        super().__init__(webhook_secret)
        self.intents: Dict[str, PaymentIntentData] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self._by_idempotency_key: Dict[str, str] = {}
        self._params_by_key: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create_intent(self, amount, currency, metadata, idempotency_key=None):
        with self._lock:
            self.create_calls.append(
                {"amount": amount, "currency": currency, "metadata": dict(metadata), "idempotency_key": idempotency_key}
            )
            params = {"amount": amount, "currency": currency.lower(), "metadata": dict(metadata)}
            if idempotency_key and idempotency_key in self._by_idempotency_key:
                if self._params_by_key[idempotency_key] != params:
                    raise IdempotencyConflict(
                        f"Keys for idempotent requests can only be used with the same parameters "
                        f"they were first used with (key {idempotency_key})"
                    )
                return self.intents[self._by_idempotency_key[idempotency_key]]

            intent_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
            intent = PaymentIntentData(
                id=intent_id,
                status=IntentStatus.REQUIRES_PAYMENT_METHOD,
                client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:16]}",
                amount=amount,
                currency=currency.lower(),
            )
            self.intents[intent_id] = intent
            if idempotency_key:
                self._by_idempotency_key[idempotency_key] = intent_id
                self._params_by_key[idempotency_key] = params
        logger.info(f"MOCK MODE: created payment intent {intent_id}, no real payment will be processed")
        return intent

    def retrieve_intent(self, intent_id):
        with self._lock:
            intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"No such payment_intent: '{intent_id}'")
        return intent

    def cancel_intent(self, intent_id):
        return self.set_status(intent_id, IntentStatus.CANCELED)

    def set_status(self, intent_id: str, status: str) -> PaymentIntentData:
        """Move a mock intent to another processor status (e.g. to simulate a card payment)."""
        with self._lock:
            intent = self.intents.get(intent_id)
            if intent is None:
                raise PaymentGatewayError(f"No such payment_intent: '{intent_id}'")
            intent.status = status
            return intent

    def live_intents(self) -> List[PaymentIntentData]:
        with self._lock:
            return [i for i in self.intents.values() if i.status != IntentStatus.CANCELED]
