from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from pozhi.crud import crud_order, crud_product, crud_webhook_event
from pozhi.models.order import OrderStatus, PaymentStatus
from pozhi.schemas.product import ProductUpdate

pytestmark = pytest.mark.crud


def test_create_order_takes_stock(db_session: Session, test_order, test_product):
    assert test_order.status == OrderStatus.PENDING
    assert test_order.payment_status == PaymentStatus.PENDING
    assert test_order.payment_intent_id is None
    assert len(test_order.items) == 1
    db_session.expire_all()
    assert crud_product.get_product(db_session, product_id=test_product.id).stock_quantity == 19

def test_get_order_for_user_is_ownership_scoped(db_session: Session, test_order, test_normal_user):
    assert crud_order.get_order_for_user(db_session, order_id=test_order.id, user_id=test_normal_user.id) is not None
    assert crud_order.get_order_for_user(db_session, order_id=test_order.id, user_id="someone-else") is None

def test_get_orders_by_user_filters_status(db_session: Session, test_order, test_normal_user):
    assert len(crud_order.get_orders_by_user(db_session, user_id=test_normal_user.id)) == 1
    assert crud_order.get_orders_by_user(db_session, user_id=test_normal_user.id, status=OrderStatus.SHIPPED) == []

def test_attach_payment_intent_compare_and_swap(db_session: Session, test_order):
    assert crud_order.attach_payment_intent(
        db_session, order_id=test_order.id, expected_intent_id=None, new_intent_id="pi_first"
    ) is True
    # a writer that still believes the column is empty loses
    assert crud_order.attach_payment_intent(
        db_session, order_id=test_order.id, expected_intent_id=None, new_intent_id="pi_second"
    ) is False
    assert crud_order.attach_payment_intent(
        db_session, order_id=test_order.id, expected_intent_id="pi_first", new_intent_id="pi_third"
    ) is True

    db_session.expire_all()
    assert crud_order.get_order(db_session, order_id=test_order.id).payment_intent_id == "pi_third"
    assert crud_order.get_order_by_payment_intent(db_session, payment_intent_id="pi_third").id == test_order.id
    assert crud_order.get_order_by_payment_intent(db_session, payment_intent_id="pi_first") is None

def test_attach_payment_intent_refuses_paid_order(db_session: Session, test_order):
    crud_order.update_order(db_session, db_obj=test_order, obj_in={"payment_status": PaymentStatus.SUCCEEDED})
    assert crud_order.attach_payment_intent(
        db_session, order_id=test_order.id, expected_intent_id=None, new_intent_id="pi_late"
    ) is False

def test_restock_items(db_session: Session, test_order, test_product):
    crud_order.restock_items(db_session, order=test_order)
    db_session.commit()
    db_session.expire_all()
    assert crud_product.get_product(db_session, product_id=test_product.id).stock_quantity == 20

def test_record_webhook_event_once(db_session: Session):
    assert crud_webhook_event.has_event(db_session, event_id="evt_1") is False
    assert crud_webhook_event.record_event(db_session, event_id="evt_1", event_type="payment_intent.succeeded") is True
    assert crud_webhook_event.record_event(db_session, event_id="evt_1", event_type="payment_intent.succeeded") is False
    assert crud_webhook_event.has_event(db_session, event_id="evt_1") is True

def test_create_order_refuses_when_stock_ran_out(db_session: Session, order_factory, test_normal_user, test_product):
    crud_product.update_product(db_session, db_obj=test_product, obj_in=ProductUpdate(stock_quantity=2))

    assert order_factory(test_normal_user.id, test_product, quantity=3) is None

    db_session.expire_all()
    assert crud_product.get_product(db_session, product_id=test_product.id).stock_quantity == 2
    assert crud_order.get_orders_by_user(db_session, user_id=test_normal_user.id) == []

def test_create_order_stops_at_zero_stock(db_session: Session, order_factory, test_normal_user, test_product):
    crud_product.update_product(db_session, db_obj=test_product, obj_in=ProductUpdate(stock_quantity=2))

    assert order_factory(test_normal_user.id, test_product, quantity=2) is not None
    assert order_factory(test_normal_user.id, test_product, quantity=1) is None

    db_session.expire_all()
    assert crud_product.get_product(db_session, product_id=test_product.id).stock_quantity == 0

def test_attach_payment_intent_refuses_cancelled_order(db_session: Session, test_order):
    crud_order.update_order(db_session, db_obj=test_order, obj_in={"status": OrderStatus.CANCELLED})
    assert crud_order.attach_payment_intent(
        db_session, order_id=test_order.id, expected_intent_id=None, new_intent_id="pi_after_cancel"
    ) is False
    db_session.expire_all()
    assert crud_order.get_order(db_session, order_id=test_order.id).payment_intent_id is None

def test_cancel_unpaid_order(db_session: Session, test_order):
    now = datetime.now(timezone.utc)
    cancelled = crud_order.cancel_unpaid_order(
        db_session, order_id=test_order.id, reason="Ordered the wrong size", cancelled_at=now
    )
    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancellation_reason == "Ordered the wrong size"
    assert cancelled.cancelled_at is not None
    # a second cancel finds nothing left to cancel
    assert crud_order.cancel_unpaid_order(
        db_session, order_id=test_order.id, reason="Again", cancelled_at=now
    ) is None

def test_cancel_unpaid_order_refuses_paid_order(db_session: Session, test_order):
    now = datetime.now(timezone.utc)
    assert crud_order.mark_paid(db_session, order_id=test_order.id, paid_at=now) is True

    assert crud_order.cancel_unpaid_order(
        db_session, order_id=test_order.id, reason="Too late", cancelled_at=now
    ) is None
    db_session.expire_all()
    saved = crud_order.get_order(db_session, order_id=test_order.id)
    assert saved.status == OrderStatus.CONFIRMED
    assert saved.payment_status == PaymentStatus.SUCCEEDED

def test_mark_paid_once(db_session: Session, test_order):
    now = datetime.now(timezone.utc)
    assert crud_order.mark_paid(db_session, order_id=test_order.id, paid_at=now) is True
    assert crud_order.mark_paid(db_session, order_id=test_order.id, paid_at=now) is False
    assert crud_order.mark_payment_failed(db_session, order_id=test_order.id) is False
    db_session.expire_all()
    assert crud_order.get_order(db_session, order_id=test_order.id).payment_status == PaymentStatus.SUCCEEDED

def test_mark_paid_keeps_later_fulfilment_status(db_session: Session, test_order):
    crud_order.update_order(db_session, db_obj=test_order, obj_in={"status": OrderStatus.PROCESSING})
    crud_order.mark_paid(db_session, order_id=test_order.id, paid_at=datetime.now(timezone.utc))
    db_session.expire_all()
    assert crud_order.get_order(db_session, order_id=test_order.id).status == OrderStatus.PROCESSING
