"""
Shared fixtures for the storefront test suite.

Every test runs against a fresh in-memory store. HTTP tests talk to the real
FastAPI app through httpx's ASGITransport with the store installed on
app.state and rate limiting switched off.
"""
import time
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt

from storefront.core import config
from storefront.core.rate_limit import limiter
from storefront.main import app
from storefront.repositories.memory_store import MemoryStore
from storefront.schemas.coupon import Coupon, DiscountType
from storefront.schemas.plan import Plan


TEST_JWT_SECRET = "test-jwt-secret"
TEST_WEBHOOK_SECRET = "test-webhook-secret"

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_plan(**overrides) -> Plan:
    values = {
        "id": str(uuid.uuid4()),
        "name": "Monthly",
        "description": "One month of access",
        "price": Decimal("100.00"),
        "duration_months": 1,
        "features": ["Full catalog"],
        "is_active": True,
        "display_order": 1,
        "created_at": NOW - timedelta(days=30),
    }
    values.update(overrides)
    return Plan(**values)


def make_coupon(**overrides) -> Coupon:
    values = {
        "id": str(uuid.uuid4()),
        "code": "SAVE20",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("20"),
        "max_uses": 5,
        "used_count": 0,
        "valid_from": NOW - timedelta(days=10),
        "valid_until": None,
        "is_active": True,
        "created_at": NOW - timedelta(days=10),
    }
    values.update(overrides)
    return Coupon(**values)


def make_token(
    user_id: str = "user-1",
    email: str = "buyer@example.com",
    role: str | None = None,
    session_id: str | None = None,
    expires_in: int = 3600,
) -> str:
    """Sign a Supabase-shaped access token with the test secret."""
    claims = {
        "sub": user_id,
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
        "session_id": session_id or str(uuid.uuid4()),
        "exp": int(time.time()) + expires_in,
        "app_metadata": {"provider": "email", "role": role} if role else {"provider": "email"},
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(**kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(config, "WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    monkeypatch.setattr(config, "STRICT_COUPONS", False)
    monkeypatch.setattr(config, "DEFAULT_CURRENCY", "ILS")
    monkeypatch.setattr(config, "CHECKOUT_RETURN_URL", "https://shop.example.com/payment-success")
    monkeypatch.setattr(limiter, "enabled", False)


@pytest_asyncio.fixture
async def client(store):
    """Async HTTP client bound to the app with the test store installed."""
    app.state.store = store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.state.store = None


@pytest.fixture
def webhook_headers() -> dict:
    return {"Authorization": f"Bearer {TEST_WEBHOOK_SECRET}"}
