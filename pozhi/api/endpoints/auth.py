import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from pozhi.db.session import get_db
from pozhi.crud import crud_user
from pozhi.core.dependencies import get_current_active_user
from pozhi.core.security import verify_password, create_access_token
from pozhi.models.user import User as UserModel
from pozhi.schemas.token import Token
from pozhi.schemas.user import User, UserCreate

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/register", response_model=User, status_code=201)
def register_user(user_in: UserCreate, db: Session = Depends(get_db)):
    """
    Register a customer account. Admin accounts are never created through this endpoint.
    """
    if crud_user.get_user_by_email(db, email=user_in.email):
        raise HTTPException(
            status_code=400,
            detail="A user with this email already exists.",
        )
    user_in = user_in.model_copy(update={"is_superuser": False})
    user = crud_user.create_user(db=db, obj_in=user_in)
    logger.info(f"Registered user {user.id}")
    return user

@router.post("/login", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    OAuth2 compatible token login, get an access token for future requests.
    """
    user = crud_user.get_user_by_email(db, email=form_data.username)
    if not user or not user.hashed_password or not verify_password(form_data.password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")

    access_token = create_access_token(data={"sub": user.id})
    return {"access_token": access_token, "token_type": "bearer"}

@router.get("/me", response_model=User)
def read_current_user(current_user: UserModel = Depends(get_current_active_user)):
    return current_user
