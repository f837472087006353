from datetime import datetime
from typing import Optional, List

from sqlalchemy import update, func
from sqlalchemy.orm import Session, selectinload

from pozhi.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from pozhi.models.product import Product
from pozhi.schemas.order import OrderCreateInternal

def create_order(db: Session, *, obj_in: OrderCreateInternal) -> Optional[Order]:
    """
    Insert an order with its line items and take the ordered quantities out of stock.
    The order starts pending/pending with no payment intent attached.

    Returns None, writing nothing, when a line's stock ran out after it was checked.
    """
    data = obj_in.model_dump(exclude={"items"})
    db_obj = Order(**data, status=OrderStatus.PENDING, payment_status=PaymentStatus.PENDING)
    for item in obj_in.items:
        db_obj.items.append(OrderItem(**item.model_dump()))
        taken = db.query(Product).filter(
            Product.id == item.product_id,
            Product.stock_quantity >= item.quantity,
        ).update(
            {Product.stock_quantity: Product.stock_quantity - item.quantity},
            synchronize_session=False,
        )
        if taken != 1:
            db.rollback()
            return None
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def get_order(db: Session, order_id: str) -> Optional[Order]:
    """
    Get an order by ID regardless of owner. Admin and webhook paths only.
    """
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )

def get_order_for_user(db: Session, *, order_id: str, user_id: str) -> Optional[Order]:
    """
    Ownership-scoped lookup: both the order id and the owner must match.
    A missing order and somebody else's order are indistinguishable to the caller.
    """
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id, Order.user_id == user_id)
        .first()
    )

def get_orders_by_user(
    db: Session, *, user_id: str, status: Optional[str] = None, skip: int = 0, limit: int = 20
) -> List[Order]:
    """
    Orders of one user, newest first.
    """
    query = db.query(Order).options(selectinload(Order.items)).filter(Order.user_id == user_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc()).offset(skip).limit(limit).all()

def get_order_by_payment_intent(db: Session, *, payment_intent_id: str) -> Optional[Order]:
    return db.query(Order).filter(Order.payment_intent_id == payment_intent_id).first()

def update_order(db: Session, *, db_obj: Order, obj_in: dict) -> Order:
    for field, value in obj_in.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def attach_payment_intent(
    db: Session, *, order_id: str, expected_intent_id: Optional[str], new_intent_id: str
) -> bool:
    """
    Compare-and-swap ``payment_intent_id`` from the value the caller observed to a new one.

    Returns False when another request changed the column in between, or the order
    was paid or cancelled meanwhile; nothing is written in that case.
    """
    if expected_intent_id is None:
        current_matches = Order.payment_intent_id.is_(None)
    else:
        current_matches = Order.payment_intent_id == expected_intent_id

    result = db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            current_matches,
            Order.payment_status != PaymentStatus.SUCCEEDED,
            Order.status != OrderStatus.CANCELLED,
        )
        .values(payment_intent_id=new_intent_id, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1

def cancel_unpaid_order(
    db: Session, *, order_id: str, reason: str, cancelled_at: datetime
) -> Optional[Order]:
    """
    Cancel the order only while it is unpaid and still in a cancellable status.
    Returns the refreshed order, or None when a concurrent payment or cancel got there first.
    """
    result = db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.payment_status != PaymentStatus.SUCCEEDED,
            Order.status.in_(OrderStatus.CANCELLABLE),
        )
        .values(
            status=OrderStatus.CANCELLED,
            cancelled_at=cancelled_at,
            cancellation_reason=reason,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    db.expire_all()
    return get_order(db, order_id=order_id)

def mark_paid(db: Session, *, order_id: str, paid_at: datetime) -> bool:
    """
    Record a successful payment once. A pending order also moves to confirmed.
    Returns False when the order was already marked paid.
    """
    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status != PaymentStatus.SUCCEEDED)
        .values(payment_status=PaymentStatus.SUCCEEDED, paid_at=paid_at, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.CONFIRMED)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    return result.rowcount == 1

def mark_payment_failed(db: Session, *, order_id: str) -> bool:
    """Never downgrades an order that is already paid."""
    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status != PaymentStatus.SUCCEEDED)
        .values(payment_status=PaymentStatus.FAILED, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1

def restock_items(db: Session, *, order: Order) -> None:
    """
    Put the quantities of a cancelled order back into stock. Caller commits.
    """
    for item in order.items:
        db.query(Product).filter(Product.id == item.product_id).update(
            {Product.stock_quantity: Product.stock_quantity + item.quantity},
            synchronize_session=False,
        )
