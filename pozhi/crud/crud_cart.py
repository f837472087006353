from sqlalchemy.orm import Session, selectinload
from typing import Optional, List

from pozhi.models.cart import CartItem

def get_cart(db: Session, *, user_id: str) -> List[CartItem]:
    return (
        db.query(CartItem)
        .options(selectinload(CartItem.product))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.created_at)
        .all()
    )

def get_cart_item(db: Session, *, item_id: str, user_id: str) -> Optional[CartItem]:
    """
    Ownership-scoped: another user's cart item is reported as missing.
    """
    return db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).first()

def upsert_items(db: Session, *, user_id: str, lines: List[tuple]) -> List[CartItem]:
    """
    Put ``(product, quantity)`` lines into the cart in one transaction.
    A product already in the cart gets its quantity replaced, not added to.
    """
    saved = []
    for product, quantity in lines:
        item = db.query(CartItem).filter(
            CartItem.user_id == user_id, CartItem.product_id == product.id
        ).first()
        if item is None:
            item = CartItem(user_id=user_id, product_id=product.id)
        item.quantity = quantity
        item.unit_price = product.price
        db.add(item)
        saved.append(item)
    db.commit()
    for item in saved:
        db.refresh(item)
    return saved

def update_quantity(db: Session, *, db_obj: CartItem, quantity: int) -> CartItem:
    db_obj.quantity = quantity
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def remove_item(db: Session, *, item_id: str, user_id: str) -> bool:
    deleted = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted == 1

def clear_cart(db: Session, *, user_id: str) -> int:
    deleted = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    return deleted
