import os

# Settings are read at import time; pin them before anything from the app is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OTEL_TRACING_ENABLED", "false")
os.environ.setdefault("PAYMENT_GATEWAY", "fake")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from main import app
from services.cart_service.service import CartService
from services.order_service.checkout import CheckoutService
from services.payment_service.gateway import FakeGateway, reset_gateway, set_gateway
from services.product_service.schemas import ProductCreate
from services.product_service.service import ProductService
from shared.config.database import Base, get_db
from shared.security.jwt_handler import ALGORITHM, SECRET_KEY

WEBHOOK_SECRET = "whsec_test"
INTERNAL_HEADERS = {"X-Internal-API-Key": "test-internal-key"}

SHIPPING_ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address_line1": "12 Analytical Row",
    "city": "London",
    "state": "Greater London",
    "postal_code": "N1 9GU",
    "country": "GB",
    "phone": "+44 20 7946 0000",
}


@pytest.fixture
async def engine(tmp_path):
    # File-backed so concurrent sessions get separate connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    gw = FakeGateway(webhook_secret=WEBHOOK_SECRET)
    set_gateway(gw)
    yield gw
    reset_gateway()


@pytest.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def create_product(session_factory):
    async def _create(**overrides):
        data = {
            "name": "Widget",
            "sku": f"SKU-{uuid4().hex[:8]}",
            "price": Decimal("10.00"),
            "stock_quantity": 5,
            **overrides,
        }
        async with session_factory() as session:
            return await ProductService.create_product(session, ProductCreate(**data))

    return _create


@pytest.fixture
def add_to_cart(session_factory):
    async def _add(owner_id: str, product_id: int, quantity: int):
        async with session_factory() as session:
            return await CartService.add_item(session, owner_id, product_id, quantity)

    return _add


@pytest.fixture
def checkout(session_factory):
    async def _checkout(owner_id: str, **kwargs):
        kwargs.setdefault("shipping_address", dict(SHIPPING_ADDRESS))
        async with session_factory() as session:
            return await CheckoutService.checkout(session, owner_id, **kwargs)

    return _checkout


def bearer_token(owner_id: str, expires_in: timedelta = timedelta(minutes=15)) -> str:
    """Signs a token the way the upstream auth provider does."""
    expire = datetime.now(timezone.utc) + expires_in
    return jwt.encode({"sub": owner_id, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(owner_id: str) -> dict:
    return {"Authorization": f"Bearer {bearer_token(owner_id)}"}


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Builds a Stripe-Signature header: t=<ts>,v1=<hex hmac-sha256 of "ts.payload">."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def signed_event(event_type: str, intent_id: str, event_id: str | None = None, secret: str = WEBHOOK_SECRET):
    """Returns (payload bytes, signature header) for a provider event."""
    body = {
        "id": event_id or f"evt_{uuid4().hex[:16]}",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent"}},
    }
    payload = json.dumps(body).encode()
    return payload, sign_payload(payload, secret)
