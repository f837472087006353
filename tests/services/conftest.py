import copy
import threading
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from pozhi.models.order import OrderStatus, PaymentStatus
from pozhi.services.payment_coordinator import PaymentCoordinator
from pozhi.services.payment_gateway import MockPaymentGateway


class InMemoryOrderStore:
    """
    Thread-safe order store. Every read hands out a copy, the way separate
    database sessions would, so a caller never sees writes it did not re-read.
    """

    def __init__(self):
        self.orders = {}
        self.restocked = []
        self._lock = threading.Lock()

    def add(self, owner_id: str, total_amount: str = "767.00", **fields):
        order = SimpleNamespace(
            id=str(uuid.uuid4()),
            user_id=owner_id,
            total_amount=Decimal(total_amount),
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_intent_id=None,
            is_flagged_fraud=False,
            paid_at=None,
            cancelled_at=None,
            cancellation_reason=None,
            items=[SimpleNamespace(product_id="frame", quantity=1)],
        )
        for key, value in fields.items():
            setattr(order, key, value)
        with self._lock:
            self.orders[order.id] = order
        return copy.deepcopy(order)

    def get(self, order_id: str):
        with self._lock:
            return copy.deepcopy(self.orders[order_id])

    def get_order(self, order_id):
        with self._lock:
            order = self.orders.get(order_id)
            return copy.deepcopy(order) if order is not None else None

    def find_order(self, order_id, owner_id):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.user_id != owner_id:
                return None
            return copy.deepcopy(order)

    def find_by_payment_intent(self, payment_intent_id):
        with self._lock:
            for order in self.orders.values():
                if order.payment_intent_id == payment_intent_id:
                    return copy.deepcopy(order)
        return None

    def update_order(self, order_id, fields):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None:
                raise LookupError(order_id)
            for key, value in fields.items():
                setattr(order, key, value)
            return copy.deepcopy(order)

    def attach_payment_intent(self, order_id, expected_intent_id, new_intent_id):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.payment_intent_id != expected_intent_id:
                return False
            if order.payment_status == PaymentStatus.SUCCEEDED or order.status == OrderStatus.CANCELLED:
                return False
            order.payment_intent_id = new_intent_id
            return True

    def cancel_unpaid(self, order_id, reason, cancelled_at):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.payment_status == PaymentStatus.SUCCEEDED:
                return None
            if order.status not in OrderStatus.CANCELLABLE:
                return None
            order.status = OrderStatus.CANCELLED
            order.cancelled_at = cancelled_at
            order.cancellation_reason = reason
            return copy.deepcopy(order)

    def mark_paid(self, order_id, paid_at):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.payment_status == PaymentStatus.SUCCEEDED:
                return False
            order.payment_status = PaymentStatus.SUCCEEDED
            order.paid_at = paid_at
            if order.status == OrderStatus.PENDING:
                order.status = OrderStatus.CONFIRMED
            return True

    def mark_failed(self, order_id):
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.payment_status == PaymentStatus.SUCCEEDED:
                return False
            order.payment_status = PaymentStatus.FAILED
            return True

    def restock(self, order):
        self.restocked.append(order.id)


class InMemoryEventLog:
    def __init__(self):
        self.events = {}

    def seen(self, event_id):
        return event_id in self.events

    def record(self, event_id, event_type):
        if event_id in self.events:
            return False
        self.events[event_id] = event_type
        return True


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def gateway():
    return MockPaymentGateway(webhook_secret="whsec_test_secret")


@pytest.fixture
def coordinator(store, gateway):
    return PaymentCoordinator(store, gateway, currency="inr", min_amount=100, max_amount=50_000_000)


@pytest.fixture
def event_log():
    return InMemoryEventLog()
