import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from pozhi.db.base_class import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    label = Column(String(50), nullable=False)  # e.g., Home, Office
    recipient_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    street_line1 = Column(String(255), nullable=False)
    street_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(6), nullable=False)
    country = Column(String(100), nullable=False, default="India")
    is_default = Column(Boolean, default=False, nullable=False)
    # Deleted addresses stay referenced by history, they are only hidden
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def as_shipping_text(self) -> str:
        lines = [self.recipient_name, self.street_line1, self.street_line2,
                 f"{self.city}, {self.state} {self.zip_code}", self.country, f"Phone: {self.phone}"]
        return "\n".join(line for line in lines if line)

    def __repr__(self):
        return f"<Address(id={self.id}, user_id={self.user_id}, label='{self.label}')>"
