"""
Persistence seams the payment services depend on.

The coordinator and webhook dispatcher only see these protocols, so they run
against SQLAlchemy in the app and against in-memory fakes in tests.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from pozhi.crud import crud_order, crud_webhook_event
from pozhi.models.order import Order


class OrderStore(Protocol):
    def get_order(self, order_id: str) -> Optional[Any]:
        ...

    def find_order(self, order_id: str, owner_id: str) -> Optional[Any]:
        ...

    def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Any]:
        ...

    def update_order(self, order_id: str, fields: Dict[str, Any]) -> Any:
        ...

    def attach_payment_intent(self, order_id: str, expected_intent_id: Optional[str], new_intent_id: str) -> bool:
        ...

    def cancel_unpaid(self, order_id: str, reason: str, cancelled_at: datetime) -> Optional[Any]:
        ...

    def mark_paid(self, order_id: str, paid_at: datetime) -> bool:
        ...

    def mark_failed(self, order_id: str) -> bool:
        ...

    def restock(self, order: Any) -> None:
        ...


class WebhookEventLog(Protocol):
    def seen(self, event_id: str) -> bool:
        ...

    def record(self, event_id: str, event_type: str) -> bool:
        ...


class SqlAlchemyOrderStore:
    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: str) -> Optional[Order]:
        return crud_order.get_order(self.db, order_id=order_id)

    def find_order(self, order_id: str, owner_id: str) -> Optional[Order]:
        return crud_order.get_order_for_user(self.db, order_id=order_id, user_id=owner_id)

    def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        return crud_order.get_order_by_payment_intent(self.db, payment_intent_id=payment_intent_id)

    def update_order(self, order_id: str, fields: Dict[str, Any]) -> Order:
        db_obj = crud_order.get_order(self.db, order_id=order_id)
        if db_obj is None:
            raise LookupError(f"Order {order_id} disappeared during update")
        return crud_order.update_order(self.db, db_obj=db_obj, obj_in=fields)

    def attach_payment_intent(self, order_id: str, expected_intent_id: Optional[str], new_intent_id: str) -> bool:
        return crud_order.attach_payment_intent(
            self.db, order_id=order_id, expected_intent_id=expected_intent_id, new_intent_id=new_intent_id
        )

    def cancel_unpaid(self, order_id: str, reason: str, cancelled_at: datetime) -> Optional[Order]:
        return crud_order.cancel_unpaid_order(self.db, order_id=order_id, reason=reason, cancelled_at=cancelled_at)

    def mark_paid(self, order_id: str, paid_at: datetime) -> bool:
        return crud_order.mark_paid(self.db, order_id=order_id, paid_at=paid_at)

    def mark_failed(self, order_id: str) -> bool:
        return crud_order.mark_payment_failed(self.db, order_id=order_id)

    def restock(self, order: Order) -> None:
        crud_order.restock_items(self.db, order=order)
        self.db.commit()


class SqlAlchemyWebhookEventLog:
    def __init__(self, db: Session):
        self.db = db

    def seen(self, event_id: str) -> bool:
        return crud_webhook_event.has_event(self.db, event_id=event_id)

    def record(self, event_id: str, event_type: str) -> bool:
        return crud_webhook_event.record_event(self.db, event_id=event_id, event_type=event_type)
