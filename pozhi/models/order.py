import uuid

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pozhi.db.base_class import Base


class OrderStatus:
    """Fulfilment status of an order."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)
    CANCELLABLE = (PENDING, CONFIRMED)


class PaymentStatus:
    PENDING = "pending"
    SUCCEEDED = "succeeded"  # terminal
    FAILED = "failed"

    ALL = (PENDING, SUCCEEDED, FAILED)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    # Authoritative amount to charge, computed server-side at order creation
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING, index=True)
    payment_intent_id = Column(String(255), nullable=True, index=True, unique=True)
    is_flagged_fraud = Column(Boolean, nullable=False, default=False)

    shipping_address = Column(Text, nullable=True)
    customer_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Order(id={self.id}, user_id={self.user_id}, status='{self.status}', payment_status='{self.payment_status}')>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    product_name = Column(String(255), nullable=False)  # snapshot at purchase
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
