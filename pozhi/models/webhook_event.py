from sqlalchemy import Column, Integer, String, DateTime, func
from pozhi.db.base_class import Base


class WebhookEvent(Base):
    """Processor event ids already dispatched; redeliveries are acknowledged without re-processing."""
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)  # e.g. "evt_1Abc..."
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime, server_default=func.now(), nullable=False)
