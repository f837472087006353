from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pozhi.models.webhook_event import WebhookEvent

def has_event(db: Session, *, event_id: str) -> bool:
    return db.query(WebhookEvent.id).filter(WebhookEvent.event_id == event_id).first() is not None

def record_event(db: Session, *, event_id: str, event_type: str) -> bool:
    """
    Record a processed event id. Returns False when a concurrent delivery recorded it first.
    """
    db.add(WebhookEvent(event_id=event_id, event_type=event_type))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True
