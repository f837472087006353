from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from pozhi.crud import crud_product
from pozhi.schemas.product import Product, ProductCreate, ProductUpdate
from pozhi.db.session import get_db
from pozhi.core.dependencies import get_current_active_superuser, get_current_user
from pozhi.core.errors import NotFound
from pozhi.models.user import User

router = APIRouter()

PRODUCT_NOT_FOUND = "Product not found"

@router.post("/", response_model=Product, status_code=201)
def create_product(
    product_in: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    """
    Add a product to the catalog. Requires superuser privileges.
    """
    return crud_product.create_product(db=db, obj_in=product_in)

@router.get("/", response_model=List[Product])
def read_products(
    db: Session = Depends(get_db),
    category: Optional[str] = Query(None, description="frames, album, passphoto or photocopies"),
    include_inactive: bool = Query(False, description="Admins only: also list inactive products."),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    current_user: Optional[User] = Depends(get_current_user)
):
    """
    Browse the catalog. Anonymous users and customers only ever see active products.
    """
    is_admin = bool(current_user and current_user.is_superuser)
    is_active = None if (is_admin and include_inactive) else True
    return crud_product.get_products(db, category=category, is_active=is_active, skip=skip, limit=limit)

@router.get("/{product_id}", response_model=Product)
def read_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user)
):
    show_inactive = bool(current_user and current_user.is_superuser)
    db_product = crud_product.get_product(db, product_id=product_id, show_inactive=show_inactive)
    if not db_product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return db_product

@router.put("/{product_id}", response_model=Product)
def update_product(
    product_id: str,
    product_in: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    db_product = crud_product.get_product(db, product_id=product_id, show_inactive=True)
    if not db_product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return crud_product.update_product(db=db, db_obj=db_product, obj_in=product_in)

@router.delete("/{product_id}", response_model=Product)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_superuser)
):
    """
    Soft delete: the product is marked inactive so past orders keep their reference.
    """
    deleted_product = crud_product.delete_product(db=db, product_id=product_id)
    if not deleted_product:
        raise NotFound(PRODUCT_NOT_FOUND)
    return deleted_product
