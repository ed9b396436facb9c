"""
Test suite for the public catalog and checkout endpoints.
Tests request validation, authentication, response structure and storage errors.
"""
from decimal import Decimal

import pytest

from storefront.core import config
from storefront.core.exceptions import StorageUnavailableError
from storefront.schemas.coupon import DiscountType

from conftest import auth_headers, make_coupon, make_plan


@pytest.mark.asyncio
async def test_list_plans_only_active_in_display_order(client, store):
    """
    Test GET /api/v1/plans.

    Validates:
    - No authentication required
    - Inactive plans are hidden
    - Plans are ordered by display_order
    """
    await store.create_plan(make_plan(name="Yearly", display_order=2, duration_months=12))
    await store.create_plan(make_plan(name="Monthly", display_order=1))
    await store.create_plan(make_plan(name="Retired", display_order=0, is_active=False))

    response = await client.get("/api/v1/plans")

    assert response.status_code == 200
    data = response.json()
    assert [p["name"] for p in data] == ["Monthly", "Yearly"]
    for field in ["id", "name", "description", "price", "duration_months", "features", "display_order"]:
        assert field in data[0], f"Missing field '{field}' in plan response"


@pytest.mark.asyncio
async def test_get_inactive_plan_returns_404(client, store):
    plan = await store.create_plan(make_plan(is_active=False))

    response = await client.get(f"/api/v1/plans/{plan.id}")

    assert response.status_code == 404
    assert response.json()["detail"] == "plan_not_found"


@pytest.mark.asyncio
async def test_checkout_requires_authentication(client, store):
    plan = await store.create_plan(make_plan())

    response = await client.post("/api/v1/checkout", json={"plan_id": plan.id})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_rejects_bad_token(client, store):
    plan = await store.create_plan(make_plan())

    response = await client.post(
        "/api/v1/checkout",
        json={"plan_id": plan.id},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_with_coupon(client, store):
    """
    Test POST /api/v1/checkout with a valid coupon.

    Validates:
    - 201 with order id, amounts, currency and redirect handle
    - Order belongs to the token's user
    """
    plan = await store.create_plan(make_plan(price=Decimal("100")))
    await store.create_coupon(make_coupon())

    response = await client.post(
        "/api/v1/checkout",
        json={"plan_id": plan.id, "coupon_code": " save20 "},
        headers=auth_headers(user_id="buyer-7"),
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert Decimal(data["gross_amount"]) == Decimal("100")
    assert Decimal(data["discount_amount"]) == Decimal("20")
    assert Decimal(data["net_amount"]) == Decimal("80")
    assert data["currency"] == "ILS"
    assert data["coupon_applied"] is True
    assert data["redirect_handle"].startswith("https://shop.example.com/payment-success?session_id=cs_")

    order = await store.get_order(data["order_id"])
    assert order.user_id == "buyer-7"


@pytest.mark.asyncio
async def test_checkout_invalid_coupon_is_not_fatal(client, store):
    plan = await store.create_plan(make_plan(price=Decimal("50")))

    response = await client.post(
        "/api/v1/checkout",
        json={"plan_id": plan.id, "coupon_code": "GHOST"},
        headers=auth_headers(),
    )

    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["net_amount"]) == Decimal("50")
    assert data["coupon_applied"] is False
    assert data["coupon_rejection"] == "not_found"


@pytest.mark.asyncio
async def test_checkout_strict_coupons(client, store, monkeypatch):
    monkeypatch.setattr(config, "STRICT_COUPONS", True)
    plan = await store.create_plan(make_plan())

    response = await client.post(
        "/api/v1/checkout",
        json={"plan_id": plan.id, "coupon_code": "GHOST"},
        headers=auth_headers(),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "coupon_rejected"


@pytest.mark.asyncio
async def test_checkout_unknown_plan(client):
    response = await client.post(
        "/api/v1/checkout",
        json={"plan_id": "nope"},
        headers=auth_headers(),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "plan_not_found"


@pytest.mark.asyncio
async def test_checkout_requires_plan_id(client):
    response = await client.post("/api/v1/checkout", json={"plan_id": "  "}, headers=auth_headers())

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_checkout_storage_outage_returns_503(client, store, monkeypatch):
    plan = await store.create_plan(make_plan())

    async def broken_create(order, redeem_coupon_id=None):
        raise StorageUnavailableError("connection refused")

    monkeypatch.setattr(store, "create_order", broken_create)

    response = await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers())

    assert response.status_code == 503
    assert response.json()["detail"] == "storage_unavailable"


@pytest.mark.asyncio
async def test_preview_fixed_coupon_clamped(client, store):
    plan = await store.create_plan(make_plan(price=Decimal("50")))
    coupon = await store.create_coupon(
        make_coupon(code="BIG60", discount_type=DiscountType.FIXED, discount_value=Decimal("60"))
    )

    response = await client.post(
        "/api/v1/checkout/preview",
        json={"plan_id": plan.id, "coupon_code": "BIG60"},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["discount_amount"]) == Decimal("50")
    assert Decimal(data["net_amount"]) == Decimal("0")
    assert (await store.get_coupon(coupon.id)).used_count == 0


@pytest.mark.asyncio
async def test_my_orders_lists_only_own_orders(client, store):
    plan = await store.create_plan(make_plan())
    headers_a = auth_headers(user_id="user-a")
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=headers_a)
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers(user_id="user-b"))

    response = await client.get("/api/v1/orders/me", headers=headers_a)

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["user_id"] == "user-a"
    assert data[0]["payment_status"] == "pending"


@pytest.mark.asyncio
async def test_root_endpoint(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "OK"
