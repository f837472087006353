import hashlib
import hmac
import json
import os
import time
import uuid
from decimal import Decimal

# Settings are read at import time, so they must be in place before pozhi is imported
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["PAYMENT_MODE"] = "mock"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from pozhi.main import app
from pozhi.core.dependencies import account_limiter, cart_limiter, get_payment_gateway, payment_limiter
from pozhi.core.pricing import calculate_pricing
from pozhi.crud import crud_order, crud_product, crud_user
from pozhi.db.base_class import Base
from pozhi.db.session import get_db
from pozhi.models.order import Order as OrderModel
from pozhi.models.product import Product as ProductModel
from pozhi.schemas.order import OrderCreateInternal, OrderItemInternal
from pozhi.schemas.product import ProductCreate
from pozhi.schemas.user import UserCreate
from pozhi.services.payment_gateway import MockPaymentGateway
import pozhi.models  # noqa: F401

WEBHOOK_SECRET = "whsec_test_secret"
TEST_PASSWORD = "testpassword123"

TEST_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="session")
def test_engine():
    Base.metadata.create_all(bind=engine)
    yield engine


@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Fresh tables for every test. Commits made here are visible to API calls
    made through the TestClient within the same test.
    """
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def payment_gateway() -> MockPaymentGateway:
    gateway = MockPaymentGateway(webhook_secret=WEBHOOK_SECRET)
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield gateway
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture(scope="function")
def client(db_session, payment_gateway):
    for limiter in (payment_limiter, cart_limiter, account_limiter):
        limiter.reset()
    with TestClient(app) as c:
        yield c


def _create_user_and_get_token(db: Session, client: TestClient, is_superuser: bool = False):
    email = f"customer_{'admin_' if is_superuser else ''}{uuid.uuid4().hex[:6]}@example.com"
    user = crud_user.create_user(
        db=db,
        obj_in=UserCreate(email=email, password=TEST_PASSWORD, full_name="Test Customer", is_superuser=is_superuser),
    )
    response = client.post("/api/v1/auth/login", data={"username": email, "password": TEST_PASSWORD})
    if response.status_code != 200:
        raise Exception(f"Failed to log in user {email} during fixture setup: {response.text}")
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    return headers, user


@pytest.fixture(scope="function")
def normal_user_token_headers(db_session: Session, client: TestClient):
    return _create_user_and_get_token(db_session, client)


@pytest.fixture(scope="function")
def other_user_token_headers(db_session: Session, client: TestClient):
    return _create_user_and_get_token(db_session, client)


@pytest.fixture(scope="function")
def superuser_token_headers(db_session: Session, client: TestClient):
    return _create_user_and_get_token(db_session, client, is_superuser=True)


@pytest.fixture(scope="function")
def test_normal_user(normal_user_token_headers: tuple):
    return normal_user_token_headers[1]


@pytest.fixture(scope="function")
def test_product(db_session: Session) -> ProductModel:
    product_in = ProductCreate(
        name=f"Walnut Frame 8x10 {uuid.uuid4().hex[:6]}",
        category="frames",
        description="Solid walnut frame with glass front",
        price=Decimal("500.00"),
        stock_quantity=20,
        max_order_quantity=5,
        is_active=True,
    )
    return crud_product.create_product(db=db_session, obj_in=product_in)


def _create_order(db: Session, user_id: str, product: ProductModel, quantity: int = 1) -> OrderModel:
    line_total = product.price * quantity
    pricing = calculate_pricing(line_total)
    order_in = OrderCreateInternal(
        user_id=user_id,
        subtotal=pricing.subtotal,
        shipping_cost=pricing.shipping_cost,
        tax_amount=pricing.tax_amount,
        total_amount=pricing.total_amount,
        currency="INR",
        shipping_address="12 MG Road, Bengaluru 560001",
        items=[
            OrderItemInternal(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                total_price=line_total,
            )
        ],
    )
    return crud_order.create_order(db=db, obj_in=order_in)


@pytest.fixture(scope="function")
def order_factory(db_session: Session):
    """Insert pending orders directly. One 500.00 frame prices to a 767.00 total."""
    def make(user_id: str, product: ProductModel, quantity: int = 1) -> OrderModel:
        return _create_order(db_session, user_id, product, quantity)
    return make


@pytest.fixture(scope="function")
def test_order(order_factory, test_normal_user, test_product) -> OrderModel:
    return order_factory(test_normal_user.id, test_product)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture(scope="function")
def send_webhook(client: TestClient):
    """
    POST a processor event to the webhook endpoint, signed with the test secret
    unless ``signature`` is given (pass "" to omit the header).
    """
    def send(event_type: str, intent: dict, event_id: str = None, signature: str = None, secret: str = WEBHOOK_SECRET):
        payload = json.dumps({
            "id": event_id or f"evt_{uuid.uuid4().hex[:24]}",
            "object": "event",
            "type": event_type,
            "data": {"object": intent},
        })
        if signature is None:
            signature = sign_payload(payload, secret=secret)
        headers = {"Content-Type": "application/json"}
        if signature:
            headers["Stripe-Signature"] = signature
        return client.post("/api/v1/payments/webhook", content=payload, headers=headers)
    return send
