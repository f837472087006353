from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from pozhi.core import config
from pozhi.core.errors import Forbidden, RateLimited
from pozhi.core.rate_limiter import RateLimiter
from pozhi.crud import crud_user
from pozhi.db.session import get_db
from pozhi.models.user import User
from pozhi.schemas.token import TokenData
from pozhi.services.payment_coordinator import PaymentCoordinator
from pozhi.services.payment_gateway import MockPaymentGateway, PaymentGateway, StripeGateway
from pozhi.services.stores import SqlAlchemyOrderStore, SqlAlchemyWebhookEventLog
from pozhi.services.webhook_dispatcher import WebhookDispatcher

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

payment_limiter = RateLimiter(config.PAYMENT_RATE_LIMIT, config.PAYMENT_RATE_WINDOW_SECONDS)
cart_limiter = RateLimiter(config.CART_RATE_LIMIT, config.GENERAL_RATE_WINDOW_SECONDS)
account_limiter = RateLimiter(config.ACCOUNT_RATE_LIMIT, config.GENERAL_RATE_WINDOW_SECONDS)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Optional[User]:
    if token is None:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        token_data = TokenData(user_id=user_id)
    except JWTError:
        raise credentials_exception

    user = crud_user.get_user(db, user_id=token_data.user_id)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: Optional[User] = Depends(get_current_user),
) -> User:
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


async def get_current_active_superuser(
    current_user: User = Depends(get_current_active_user),
) -> User:
    if not current_user.is_superuser:
        raise Forbidden()
    return current_user


def rate_limit(limiter: RateLimiter, message: str):
    """Dependency counting one hit per authenticated user against ``limiter``."""
    def enforce(request: Request, current_user: User = Depends(get_current_active_user)) -> None:
        key = current_user.id or (request.client.host if request.client else "unknown")
        if not limiter.hit(key):
            raise RateLimited(message)
    return enforce


enforce_payment_rate_limit = rate_limit(payment_limiter, "Too many payment attempts")
enforce_cart_rate_limit = rate_limit(cart_limiter, "Too many cart requests")
enforce_account_rate_limit = rate_limit(account_limiter, "Too many account requests")


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    if config.PAYMENT_MODE == "mock":
        return MockPaymentGateway(webhook_secret=config.STRIPE_WEBHOOK_SECRET)
    return StripeGateway(webhook_secret=config.STRIPE_WEBHOOK_SECRET)


def get_payment_coordinator(
    db: Session = Depends(get_db), gateway: PaymentGateway = Depends(get_payment_gateway)
) -> PaymentCoordinator:
    return PaymentCoordinator(SqlAlchemyOrderStore(db), gateway)


def get_webhook_dispatcher(
    db: Session = Depends(get_db), coordinator: PaymentCoordinator = Depends(get_payment_coordinator)
) -> WebhookDispatcher:
    return WebhookDispatcher(coordinator, SqlAlchemyWebhookEventLog(db))
