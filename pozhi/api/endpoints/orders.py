import logging
from collections import OrderedDict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from pozhi.core import config
from pozhi.core.dependencies import get_current_active_user, get_current_active_superuser, get_payment_coordinator
from pozhi.core.errors import InvalidRequest, NotFound
from pozhi.core.pricing import calculate_pricing, round_money
from pozhi.crud import crud_address, crud_cart, crud_order, crud_product
from pozhi.db.session import get_db
from pozhi.models.order import OrderStatus
from pozhi.models.user import User
from pozhi.schemas.order import (
    MAX_ORDER_LINES,
    Order,
    OrderCancel,
    OrderCreate,
    OrderCreateInternal,
    OrderFromCart,
    OrderItemIn,
    OrderItemInternal,
    OrderStatusUpdate,
)
from pozhi.services.payment_coordinator import PaymentCoordinator, ORDER_NOT_FOUND

logger = logging.getLogger(__name__)
router = APIRouter()


def _price_order(db: Session, user_id: str, order_in: OrderCreate) -> OrderCreateInternal:
    # Repeated product ids are merged into one line
    quantities = OrderedDict()
    for item in order_in.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    lines = []
    for product_id, quantity in quantities.items():
        product = crud_product.get_product(db, product_id=product_id)
        if not product:
            raise NotFound(f"Product not found: {product_id}")
        if quantity > product.max_order_quantity:
            raise InvalidRequest(f"Maximum {product.max_order_quantity} units allowed per order for {product.name}")
        if quantity > product.stock_quantity:
            raise InvalidRequest(
                f"Insufficient stock for {product.name}. Available: {product.stock_quantity}, Requested: {quantity}"
            )
        lines.append(OrderItemInternal(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=product.price,
            total_price=round_money(product.price * quantity),
        ))

    pricing = calculate_pricing(sum((line.total_price for line in lines)))
    return OrderCreateInternal(
        user_id=user_id,
        subtotal=pricing.subtotal,
        shipping_cost=pricing.shipping_cost,
        tax_amount=pricing.tax_amount,
        total_amount=pricing.total_amount,
        currency=config.PAYMENT_CURRENCY.upper(),
        shipping_address=order_in.shipping_address,
        customer_notes=order_in.customer_notes,
        items=lines,
    )


@router.post("/", response_model=Order, status_code=201)
def create_order(
    order_in: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Place an order for the authenticated user. Every amount is computed from the catalog.
    Payment starts separately through /payments/create-intent.
    """
    order_internal = _price_order(db, current_user.id, order_in)
    order = crud_order.create_order(db=db, obj_in=order_internal)
    if order is None:
        raise InvalidRequest("Insufficient stock for one or more items")
    logger.info(f"Order {order.id} created for user {current_user.id}, total {order.total_amount}")
    return order

@router.post("/from-cart", response_model=Order, status_code=201)
def create_order_from_cart(
    order_in: OrderFromCart,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Order everything in the cart, priced from the catalog like any other order, then empty the cart.
    Without an address the user's default address is used.
    """
    cart_items = crud_cart.get_cart(db, user_id=current_user.id)
    if not cart_items:
        raise InvalidRequest("Cart is empty")
    if len(cart_items) > MAX_ORDER_LINES:
        raise InvalidRequest(f"An order can hold at most {MAX_ORDER_LINES} different products")

    if order_in.address_id:
        address = crud_address.get_address(db, address_id=order_in.address_id, user_id=current_user.id)
        if not address:
            raise NotFound("Address not found")
        shipping_address = address.as_shipping_text()
    elif order_in.shipping_address:
        shipping_address = order_in.shipping_address
    else:
        addresses = crud_address.get_addresses(db, user_id=current_user.id)
        if not addresses or not addresses[0].is_default:
            raise InvalidRequest("Shipping address is required")
        shipping_address = addresses[0].as_shipping_text()

    order_create = OrderCreate(
        items=[OrderItemIn(product_id=item.product_id, quantity=item.quantity) for item in cart_items],
        shipping_address=shipping_address,
        customer_notes=order_in.customer_notes,
    )
    order = create_order(order_create, db=db, current_user=current_user)
    crud_cart.clear_cart(db, user_id=current_user.id)
    return order

@router.get("/", response_model=List[Order])
def read_my_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    status: Optional[str] = Query(None, description="Filter by fulfilment status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100)
):
    return crud_order.get_orders_by_user(db, user_id=current_user.id, status=status, skip=skip, limit=limit)

@router.get("/{order_id}", response_model=Order)
def read_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Orders of other users answer 404, exactly like orders that do not exist.
    """
    db_order = crud_order.get_order_for_user(db, order_id=order_id, user_id=current_user.id)
    if not db_order:
        raise NotFound(ORDER_NOT_FOUND)
    return db_order

@router.post("/{order_id}/cancel", response_model=Order)
def cancel_order(
    order_id: str,
    cancel_in: Optional[OrderCancel] = None,
    current_user: User = Depends(get_current_active_user),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator)
):
    reason = (cancel_in or OrderCancel()).reason
    return coordinator.cancel_order(current_user.id, order_id, reason)

# Admin specific endpoints
@router.patch("/admin/{order_id}/status", response_model=Order, tags=["Admin Orders"])
def admin_update_order_status(
    order_id: str,
    status_in: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator)
):
    """
    Admin: move an order through fulfilment. Payment fields are owned by the payment flow
    and cannot be changed here. Cancelling goes through the same rules as a customer
    cancel: unpaid orders only, the payment intent is cancelled and stock is returned.
    """
    if status_in.status == OrderStatus.CANCELLED:
        logger.info(f"Admin {current_user.id} cancelling order {order_id}")
        return coordinator.cancel_order_as_admin(order_id, "Cancelled by admin")

    db_order = crud_order.get_order(db, order_id=order_id)
    if not db_order:
        raise NotFound("Order not found")
    if db_order.status == OrderStatus.CANCELLED:
        raise InvalidRequest("Cancelled orders cannot be reopened")

    logger.info(f"Admin {current_user.id} set order {order_id} status to {status_in.status}")
    return crud_order.update_order(db=db, db_obj=db_order, obj_in={"status": status_in.status})

@router.get("/admin/by-user/{user_id}", response_model=List[Order], tags=["Admin Orders"])
def admin_read_orders_by_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200)
):
    return crud_order.get_orders_by_user(db, user_id=user_id, skip=skip, limit=limit)
