import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from typing import List

from pozhi.core.dependencies import enforce_account_rate_limit, get_current_active_user
from pozhi.core.errors import NotFound
from pozhi.crud import crud_address, crud_order, crud_user
from pozhi.db.session import get_db
from pozhi.models.user import User
from pozhi.schemas.address import Address, AddressCreate, AddressUpdate
from pozhi.schemas.order import Order
from pozhi.schemas.user import Profile, ProfileUpdate

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(enforce_account_rate_limit)])

ADDRESS_NOT_FOUND = "Address not found"


def _profile(db: Session, user: User) -> Profile:
    addresses = [Address.model_validate(a) for a in crud_address.get_addresses(db, user_id=user.id)]
    return Profile.model_validate(user).model_copy(update={"addresses": addresses})


@router.get("/me", response_model=Profile)
def read_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    The authenticated user's account together with their saved addresses.
    """
    return _profile(db, current_user)

@router.patch("/me", response_model=Profile)
def update_profile(
    profile_in: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user = crud_user.update_profile(db, db_obj=current_user, obj_in=profile_in)
    logger.info(f"User {user.id} updated their profile")
    return _profile(db, user)

@router.get("/addresses", response_model=List[Address])
def read_addresses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud_address.get_addresses(db, user_id=current_user.id)

@router.post("/addresses", response_model=Address, status_code=201)
def create_address(
    address_in: AddressCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud_address.create_address(db, user_id=current_user.id, obj_in=address_in)

@router.put("/addresses/{address_id}", response_model=Address)
def update_address(
    address_id: str,
    address_in: AddressUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_address = crud_address.get_address(db, address_id=address_id, user_id=current_user.id)
    if not db_address:
        raise NotFound(ADDRESS_NOT_FOUND)
    return crud_address.update_address(db, db_obj=db_address, obj_in=address_in)

@router.delete("/addresses/{address_id}", status_code=204)
def delete_address(
    address_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_address = crud_address.get_address(db, address_id=address_id, user_id=current_user.id)
    if not db_address:
        raise NotFound(ADDRESS_NOT_FOUND)
    crud_address.delete_address(db, db_obj=db_address)
    return Response(status_code=204)

@router.get("/orders", response_model=List[Order])
def read_order_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Full order history of the authenticated user, newest first.
    """
    return crud_order.get_orders_by_user(db, user_id=current_user.id, limit=None)
