from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal

MAX_ORDER_LINES = 50

class OrderItemIn(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(..., ge=1)

class OrderCreate(BaseModel):
    """
    Data provided by the client when placing an order.
    Prices, shipping and tax are never accepted here; they are computed from the catalog.
    """
    items: List[OrderItemIn] = Field(..., min_length=1, max_length=MAX_ORDER_LINES)
    shipping_address: str = Field(..., min_length=5, max_length=1000)
    customer_notes: Optional[str] = Field(default=None, max_length=1000)

class OrderFromCart(BaseModel):
    """
    Order the current cart contents. Ship to a saved address or to an address given inline.
    """
    address_id: Optional[str] = Field(default=None, max_length=36)
    shipping_address: Optional[str] = Field(default=None, min_length=5, max_length=1000)
    customer_notes: Optional[str] = Field(default=None, max_length=1000)

class OrderItemInternal(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

class OrderCreateInternal(BaseModel):
    """
    Everything the CRUD layer needs to insert an order, after pricing.
    """
    user_id: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str = Field(default="INR", max_length=3)
    shipping_address: Optional[str] = None
    customer_notes: Optional[str] = None
    items: List[OrderItemInternal]

class OrderCancel(BaseModel):
    reason: str = Field(default="Cancelled by customer", max_length=500)

class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]

class OrderItem(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True

class Order(BaseModel):
    id: str
    user_id: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    status: str
    payment_status: str
    shipping_address: Optional[str] = None
    customer_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItem] = []

    class Config:
        from_attributes = True
