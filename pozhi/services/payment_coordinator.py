"""
Order/payment lifecycle.

An order owns at most one live payment intent, referenced by ``payment_intent_id``.
``begin_payment`` attaches or reuses that intent; webhook handlers move
``payment_status`` once the processor reports the outcome.

    pending --begin_payment--> pending (intent attached)
    pending --cancel_order--> cancelled (intent cancelled, stock returned)
    pending --payment_intent.succeeded--> succeeded (terminal)
    pending --payment_intent.payment_failed--> failed
    failed  --payment_intent.succeeded--> succeeded
"""
import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pozhi.core import config
from pozhi.core.errors import AlreadyPaid, InternalError, InvalidRequest, NotFound, Unauthorized
from pozhi.core.pricing import to_minor_units
from pozhi.models.order import OrderStatus, PaymentStatus
from pozhi.services.payment_gateway import IdempotencyConflict, IntentStatus, PaymentGateway, PaymentGatewayError
from pozhi.services.stores import OrderStore

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Order not found or access denied"


def _idempotency_key(order_id: str, previous_intent_id: Optional[str], request_ip: str) -> str:
    """
    One key per (order, intent being replaced, caller address). Everything sent under
    a key is derived from these, so a retried request always repeats its parameters.
    """
    origin = hashlib.sha256(request_ip.encode("utf-8")).hexdigest()[:12]
    return f"order-{order_id}-replaces-{previous_intent_id or 'none'}-from-{origin}"


def _validate_order_id(order_id: Any) -> str:
    if not order_id or not isinstance(order_id, str):
        raise InvalidRequest("Valid orderId is required")
    try:
        return str(uuid.UUID(order_id))
    except ValueError:
        raise InvalidRequest("Valid orderId is required")


class PaymentCoordinator:
    def __init__(
        self,
        store: OrderStore,
        gateway: PaymentGateway,
        *,
        currency: str = config.PAYMENT_CURRENCY,
        min_amount: int = config.PAYMENT_MIN_AMOUNT,
        max_amount: int = config.PAYMENT_MAX_AMOUNT,
    ):
        self.store = store
        self.gateway = gateway
        self.currency = currency
        self.min_amount = min_amount
        self.max_amount = max_amount

    def begin_payment(self, principal_id: Optional[str], order_id: Any, *, request_ip: Optional[str] = None) -> str:
        """
        Return a client secret for paying ``order_id``.

        Reuses the order's live intent when there is one, otherwise creates a new
        intent for the order's stored total and attaches it with a compare-and-swap
        so concurrent calls never persist two intents.
        """
        if not principal_id:
            raise Unauthorized()
        order_id = _validate_order_id(order_id)

        order = self.store.find_order(order_id, principal_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        if order.payment_status == PaymentStatus.SUCCEEDED:
            raise AlreadyPaid()
        if order.status == OrderStatus.CANCELLED:
            raise InvalidRequest("Order has been cancelled")

        previous_intent_id = order.payment_intent_id
        if previous_intent_id:
            existing = self._retrieve_reusable(previous_intent_id)
            if existing is not None:
                logger.info(f"Reusing payment intent {existing.id} for order {order_id}")
                return existing.client_secret

        amount = to_minor_units(order.total_amount)
        if amount < self.min_amount or amount > self.max_amount:
            raise InvalidRequest("Order total is outside the amounts the payment processor accepts")

        request_ip = request_ip or "unknown"
        metadata = {
            "order_id": order_id,
            "user_id": principal_id,
            "ip_address": request_ip,
            "item_count": str(len(getattr(order, "items", None) or [])),
        }
        idempotency_key = _idempotency_key(order_id, previous_intent_id, request_ip)
        try:
            intent = self.gateway.create_intent(amount, self.currency, metadata, idempotency_key=idempotency_key)
        except IdempotencyConflict as e:
            logger.warning(f"Idempotent retry for order {order_id} did not match the first request: {e}")
            return self._current_client_secret(order_id, principal_id)
        except PaymentGatewayError as e:
            logger.error(f"Payment intent creation failed for order {order_id}: {e}")
            raise InternalError(f"Payment initialization failed: {e}")

        try:
            attached = self.store.attach_payment_intent(order_id, previous_intent_id, intent.id)
        except Exception:
            # The intent now exists upstream without a reference; the webhook stays the source of truth
            logger.exception(f"Could not persist payment intent {intent.id} on order {order_id}")
            raise InternalError("Failed to record payment intent")

        if not attached:
            return self._resolve_lost_race(order_id, principal_id, intent)

        logger.info(f"Payment intent {intent.id} created for order {order_id}, amount {amount} {self.currency}")
        return intent.client_secret

    def _retrieve_reusable(self, intent_id: str):
        try:
            intent = self.gateway.retrieve_intent(intent_id)
        except PaymentGatewayError as e:
            logger.warning(f"Existing payment intent {intent_id} could not be retrieved ({e}), creating a new one")
            return None
        if intent.status == IntentStatus.CANCELED:
            logger.warning(f"Existing payment intent {intent_id} was canceled upstream, creating a new one")
            return None
        return intent

    def _resolve_lost_race(self, order_id: str, principal_id: str, intent) -> str:
        """
        Another request attached an intent between our read and our write, or the order
        was paid or cancelled meanwhile. Cancel the intent this request created and hand
        out the winner's secret when there is one.
        """
        order = self.store.find_order(order_id, principal_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        if order.payment_intent_id == intent.id:
            # the processor deduplicated both creations into the same intent
            return intent.client_secret

        try:
            self.gateway.cancel_intent(intent.id)
        except PaymentGatewayError as e:
            logger.error(f"Could not cancel orphaned payment intent {intent.id} for order {order_id}: {e}")

        logger.info(f"Concurrent checkout on order {order_id}; returning intent {order.payment_intent_id}")
        return self._client_secret_of(order)

    def _current_client_secret(self, order_id: str, principal_id: str) -> str:
        order = self.store.find_order(order_id, principal_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        return self._client_secret_of(order)

    def _client_secret_of(self, order) -> str:
        if order.payment_status == PaymentStatus.SUCCEEDED:
            raise AlreadyPaid()
        if order.status == OrderStatus.CANCELLED:
            raise InvalidRequest("Order has been cancelled")
        if not order.payment_intent_id:
            raise InternalError("Failed to record payment intent")
        try:
            return self.gateway.retrieve_intent(order.payment_intent_id).client_secret
        except PaymentGatewayError as e:
            logger.error(f"Could not retrieve payment intent {order.payment_intent_id}: {e}")
            raise InternalError("Payment initialization failed")

    def handle_payment_succeeded(self, intent: Mapping[str, Any]) -> None:
        """
        Mark the order owning ``intent`` as paid. Safe to call any number of times.
        """
        order = self._order_for_intent(intent)
        if order is None:
            return
        if order.payment_status == PaymentStatus.SUCCEEDED:
            logger.info(f"Duplicate success for payment intent {order.payment_intent_id}, skipping")
            return

        received = intent.get("amount")
        expected = to_minor_units(order.total_amount)
        if received is not None and received != expected:
            logger.error(
                f"Payment amount mismatch on order {order.id}: expected {expected}, received {received}"
            )
            self.store.update_order(order.id, {"is_flagged_fraud": True})
            return

        if not self.store.mark_paid(order.id, datetime.now(timezone.utc)):
            logger.info(f"Duplicate success for payment intent {order.payment_intent_id}, skipping")
            return
        if order.status == OrderStatus.CANCELLED:
            # money arrived for an order whose stock was already released
            logger.error(f"Payment intent {order.payment_intent_id} succeeded on cancelled order {order.id}, refund required")
            return
        logger.info(f"Order {order.id} paid via payment intent {order.payment_intent_id}")

    def handle_payment_failed(self, intent: Mapping[str, Any]) -> None:
        order = self._order_for_intent(intent)
        if order is None:
            return
        # a late failure for an earlier attempt never downgrades a paid order
        if not self.store.mark_failed(order.id):
            logger.info(f"Ignoring payment failure for already paid order {order.id}")
            return
        logger.info(f"Payment failed for order {order.id}")

    def _order_for_intent(self, intent: Mapping[str, Any]):
        intent_id = intent.get("id") if intent else None
        if not intent_id:
            logger.warning("Payment event without a payment intent id")
            return None
        order = self.store.find_by_payment_intent(intent_id)
        if order is None:
            logger.warning(f"No order found for payment intent {intent_id}")
        return order

    def cancel_order(self, principal_id: Optional[str], order_id: Any, reason: str):
        """
        Cancel an unpaid order of ``principal_id`` and release its intent and stock.
        """
        if not principal_id:
            raise Unauthorized()
        order_id = _validate_order_id(order_id)

        order = self.store.find_order(order_id, principal_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        cancelled = self._cancel(order, reason)
        logger.info(f"Order {order_id} cancelled by user {principal_id}")
        return cancelled

    def cancel_order_as_admin(self, order_id: Any, reason: str):
        """
        Same rules as ``cancel_order`` without the ownership check. Callers authorise.
        """
        order_id = _validate_order_id(order_id)
        order = self.store.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")
        cancelled = self._cancel(order, reason)
        logger.info(f"Order {order_id} cancelled by an administrator")
        return cancelled

    def _cancel(self, order, reason: str):
        if order.payment_status == PaymentStatus.SUCCEEDED or order.status not in OrderStatus.CANCELLABLE:
            raise InvalidRequest("Order cannot be cancelled at this stage")

        # conditional write: a payment landing after the read above makes this a no-op
        cancelled = self.store.cancel_unpaid(order.id, reason, datetime.now(timezone.utc))
        if cancelled is None:
            raise InvalidRequest("Order cannot be cancelled at this stage")

        if cancelled.payment_intent_id:
            try:
                self.gateway.cancel_intent(cancelled.payment_intent_id)
            except PaymentGatewayError as e:
                logger.error(f"Failed to cancel payment intent {cancelled.payment_intent_id}: {e}")

        self.store.restock(cancelled)
        return cancelled
