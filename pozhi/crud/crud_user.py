from sqlalchemy.orm import Session
from typing import Optional

from pozhi.models.user import User
from pozhi.schemas.user import ProfileUpdate, UserCreate, UserUpdate
from pozhi.core.security import get_password_hash

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()

def create_user(db: Session, *, obj_in: UserCreate) -> User:
    db_obj = User(
        email=obj_in.email.lower(),
        hashed_password=get_password_hash(obj_in.password),
        full_name=obj_in.full_name,
        phone=obj_in.phone,
        is_active=True,
        is_superuser=obj_in.is_superuser
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_user(db: Session, *, db_obj: User, obj_in: UserUpdate) -> User:
    update_data = obj_in.model_dump(exclude_unset=True)

    password = update_data.pop("password", None)
    if password:
        update_data["hashed_password"] = get_password_hash(password)

    for field, value in update_data.items():
        setattr(db_obj, field, value)

    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_profile(db: Session, *, db_obj: User, obj_in: ProfileUpdate) -> User:
    update_data = obj_in.model_dump(mode="json", exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj
