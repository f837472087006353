from sqlalchemy.orm import Session
from typing import Optional, List

from pozhi.models.address import Address
from pozhi.schemas.address import AddressCreate, AddressUpdate

def get_addresses(db: Session, *, user_id: str) -> List[Address]:
    """
    Active addresses of a user, the default one first.
    """
    return (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.is_active == True)
        .order_by(Address.is_default.desc(), Address.created_at)
        .all()
    )

def get_address(db: Session, *, address_id: str, user_id: str) -> Optional[Address]:
    return (
        db.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id, Address.is_active == True)
        .first()
    )

def _unset_default(db: Session, user_id: str, keep_id: Optional[str] = None) -> None:
    query = db.query(Address).filter(Address.user_id == user_id, Address.is_default == True)
    if keep_id:
        query = query.filter(Address.id != keep_id)
    query.update(
        {Address.is_default: False}, synchronize_session=False
    )

def create_address(db: Session, *, user_id: str, obj_in: AddressCreate) -> Address:
    if obj_in.is_default:
        _unset_default(db, user_id)
    db_obj = Address(**obj_in.model_dump(), user_id=user_id)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_address(db: Session, *, db_obj: Address, obj_in: AddressUpdate) -> Address:
    update_data = obj_in.model_dump(exclude_unset=True)
    if update_data.get("is_default"):
        _unset_default(db, db_obj.user_id, keep_id=db_obj.id)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def delete_address(db: Session, *, db_obj: Address) -> Address:
    """
    Hide the address. Orders already shipped to it keep their own copy of the text.
    """
    db_obj.is_active = False
    db_obj.is_default = False
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj
