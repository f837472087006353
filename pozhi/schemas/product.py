from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

ProductCategory = Literal["frames", "album", "passphoto", "photocopies"]

class ProductBase(BaseModel):
    name: str = Field(..., max_length=255)
    category: ProductCategory
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    max_order_quantity: int = Field(default=10, gt=0)
    is_active: bool = True

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    category: Optional[ProductCategory] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    max_order_quantity: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None

class Product(ProductBase):
    id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
