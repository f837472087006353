from sqlalchemy.orm import Session
from typing import Optional, List

from pozhi.models.product import Product
from pozhi.schemas.product import ProductCreate, ProductUpdate

def get_product(db: Session, product_id: str, *, show_inactive: bool = False) -> Optional[Product]:
    """
    Get a single product by ID.
    By default, only active products are returned unless show_inactive is True.
    """
    query = db.query(Product).filter(Product.id == product_id)
    if not show_inactive:
        query = query.filter(Product.is_active == True)
    return query.first()

def get_products(
    db: Session, *, category: Optional[str] = None, is_active: Optional[bool] = True, skip: int = 0, limit: int = 100
) -> List[Product]:
    """
    List products, optionally filtered by category. If is_active is None, returns all.
    """
    query = db.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if is_active is not None:
        query = query.filter(Product.is_active == is_active)
    return query.order_by(Product.name).offset(skip).limit(limit).all()

def create_product(db: Session, *, obj_in: ProductCreate) -> Product:
    db_obj = Product(**obj_in.model_dump())
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_product(db: Session, *, db_obj: Product, obj_in: ProductUpdate) -> Product:
    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def delete_product(db: Session, *, product_id: str) -> Optional[Product]:
    """
    Logically delete a product by setting is_active to False.
    Returns the product if found (whether or not it was already inactive), otherwise None.
    """
    db_obj = db.query(Product).filter(Product.id == product_id).first()
    if db_obj and db_obj.is_active:
        db_obj.is_active = False
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
    return db_obj
