import logging
from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.orm import Session
from typing import List

from pozhi.core.dependencies import enforce_cart_rate_limit, get_current_active_user
from pozhi.core.errors import InvalidRequest, NotFound
from pozhi.core.pricing import round_money
from pozhi.crud import crud_cart, crud_product
from pozhi.db.session import get_db
from pozhi.models.user import User
from pozhi.schemas.cart import Cart, CartAdd, CartItem, CartItemUpdate

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(enforce_cart_rate_limit)])


def _check_stock(product, quantity: int) -> None:
    if quantity > product.stock_quantity:
        raise InvalidRequest(f"Insufficient stock for {product.name}. Available: {product.stock_quantity}")


@router.get("/", response_model=Cart)
def read_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    items = crud_cart.get_cart(db, user_id=current_user.id)
    subtotal = round_money(sum((item.product.price * item.quantity for item in items if item.product), Decimal("0")))
    return {"items": items, "subtotal": subtotal}

@router.post("/", response_model=List[CartItem], status_code=201)
def add_to_cart(
    items_in: CartAdd = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Add one item or a list of items. A product already in the cart gets the new quantity.
    """
    if not isinstance(items_in, list):
        items_in = [items_in]
    if not items_in:
        raise InvalidRequest("At least one item is required")

    lines = []
    for item in items_in:
        product = crud_product.get_product(db, product_id=item.product_id)
        if not product:
            raise NotFound(f"Product not found: {item.product_id}")
        _check_stock(product, item.quantity)
        lines.append((product, item.quantity))
    saved = crud_cart.upsert_items(db, user_id=current_user.id, lines=lines)
    logger.info(f"User {current_user.id} put {len(saved)} item(s) in the cart")
    return saved

@router.patch("/", response_model=CartItem)
def update_cart_item(
    update_in: CartItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    item = crud_cart.get_cart_item(db, item_id=update_in.cart_item_id, user_id=current_user.id)
    if not item:
        raise NotFound("Cart item not found")
    product = crud_product.get_product(db, product_id=item.product_id)
    if not product:
        raise NotFound(f"Product not found: {item.product_id}")
    _check_stock(product, update_in.quantity)
    return crud_cart.update_quantity(db, db_obj=item, quantity=update_in.quantity)

@router.delete("/{item_id}", status_code=204)
def remove_cart_item(
    item_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if not crud_cart.remove_item(db, item_id=item_id, user_id=current_user.id):
        raise NotFound("Cart item not found")
    return Response(status_code=204)

@router.delete("/", status_code=204)
def clear_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    crud_cart.clear_cart(db, user_id=current_user.id)
    return Response(status_code=204)
