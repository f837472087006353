from pydantic import BaseModel, Field
from typing import List, Optional, Union
from datetime import datetime
from decimal import Decimal

class CartItemIn(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(default=1, ge=1, le=50)

# POST /cart accepts one item or a list of them
CartAdd = Union[CartItemIn, List[CartItemIn]]

class CartItemUpdate(BaseModel):
    cart_item_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(..., ge=1, le=50)

class CartProduct(BaseModel):
    id: str
    name: str
    category: str
    price: Decimal
    stock_quantity: int
    is_active: bool

    class Config:
        from_attributes = True

class CartItem(BaseModel):
    id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    created_at: datetime
    updated_at: datetime
    product: Optional[CartProduct] = None

    class Config:
        from_attributes = True

class Cart(BaseModel):
    items: List[CartItem]
    subtotal: Decimal
