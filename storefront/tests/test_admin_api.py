"""
Test suite for the admin catalog endpoints.
Tests authorization, input validation, coupon code uniqueness and plan versioning.
"""
from decimal import Decimal

import pytest

from conftest import auth_headers, make_coupon, make_plan


def admin_headers():
    return auth_headers(user_id="admin-1", email="admin@example.com", role="admin")


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(client):
    response = await client.get("/api/v1/admin/coupons", headers=auth_headers())

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_routes_require_authentication(client):
    response = await client.get("/api/v1/admin/orders")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_plan(client, store):
    response = await client.post(
        "/api/v1/admin/plans",
        json={
            "name": "  Quarterly ",
            "price": "249.90",
            "duration_months": 3,
            "features": ["All courses", "Certificates"],
            "display_order": 2,
        },
        headers=admin_headers(),
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["name"] == "Quarterly"
    assert data["is_active"] is True
    assert (await store.get_plan(data["id"])).price == Decimal("249.90")


@pytest.mark.parametrize(
    "body",
    [
        {"name": "X", "price": "10", "duration_months": 1},
        {"name": "Plan", "price": "-1", "duration_months": 1},
        {"name": "Plan", "price": "10", "duration_months": 0},
        {"name": "Plan", "price": "10", "duration_months": 121},
        {"name": "Plan", "price": "10.999", "duration_months": 1},
    ],
)
@pytest.mark.asyncio
async def test_create_plan_validation(client, body):
    response = await client.post("/api/v1/admin/plans", json=body, headers=admin_headers())

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_unsold_plan_in_place(client, store):
    plan = await store.create_plan(make_plan(price=Decimal("100")))

    response = await client.patch(
        f"/api/v1/admin/plans/{plan.id}", json={"price": "120"}, headers=admin_headers()
    )

    assert response.status_code == 200
    assert response.json()["id"] == plan.id
    assert (await store.get_plan(plan.id)).price == Decimal("120")


@pytest.mark.asyncio
async def test_price_change_on_sold_plan_creates_new_version(client, store):
    """
    Validates:
    - Existing orders keep pointing at the old plan
    - The old plan is deactivated and a new active plan carries the new price
    """
    plan = await store.create_plan(make_plan(price=Decimal("100"), name="Monthly"))
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers())

    response = await client.patch(
        f"/api/v1/admin/plans/{plan.id}", json={"price": "120"}, headers=admin_headers()
    )

    assert response.status_code == 200
    data = response.json()
    assert data["id"] != plan.id
    assert data["name"] == "Monthly"
    assert Decimal(data["price"]) == Decimal("120")

    old = await store.get_plan(plan.id)
    assert old.is_active is False
    assert old.price == Decimal("100")

    public = await client.get("/api/v1/plans")
    assert [p["id"] for p in public.json()] == [data["id"]]


@pytest.mark.asyncio
async def test_rename_sold_plan_creates_new_version(client, store):
    """
    Validates:
    - Name and feature edits on a sold plan leave the sold plan untouched
    - The edit lands on a new active plan
    """
    plan = await store.create_plan(make_plan(name="Monthly", features=["Full catalog"]))
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers())

    response = await client.patch(
        f"/api/v1/admin/plans/{plan.id}",
        json={"name": "Monthly Plus", "features": ["Full catalog", "Certificates"]},
        headers=admin_headers(),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["id"] != plan.id
    assert data["name"] == "Monthly Plus"
    assert data["features"] == ["Full catalog", "Certificates"]

    old = await store.get_plan(plan.id)
    assert old.name == "Monthly"
    assert old.features == ["Full catalog"]
    assert old.is_active is False


@pytest.mark.asyncio
async def test_deactivate_sold_plan_in_place(client, store):
    plan = await store.create_plan(make_plan())
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers())

    response = await client.patch(
        f"/api/v1/admin/plans/{plan.id}", json={"is_active": False}, headers=admin_headers()
    )

    assert response.status_code == 200
    assert response.json()["id"] == plan.id
    assert (await store.get_plan(plan.id)).is_active is False
    assert len(await store.list_plans(active_only=False)) == 1


@pytest.mark.asyncio
async def test_update_missing_plan_returns_404(client):
    response = await client.patch(
        "/api/v1/admin/plans/missing", json={"name": "Whatever"}, headers=admin_headers()
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_coupon_uppercases_and_rejects_duplicates(client, store):
    body = {"code": "spring25", "discount_type": "percentage", "discount_value": "25", "max_uses": 10}

    created = await client.post("/api/v1/admin/coupons", json=body, headers=admin_headers())
    duplicate = await client.post(
        "/api/v1/admin/coupons", json={**body, "code": "SPRING25"}, headers=admin_headers()
    )

    assert created.status_code == 201, created.text
    assert created.json()["code"] == "SPRING25"
    assert created.json()["used_count"] == 0
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "coupon_code_taken"


@pytest.mark.parametrize(
    "body",
    [
        {"code": "AB", "discount_type": "fixed", "discount_value": "5"},
        {"code": "BAD CODE", "discount_type": "fixed", "discount_value": "5"},
        {"code": "TOOMUCH", "discount_type": "percentage", "discount_value": "101"},
        {"code": "ZERO", "discount_type": "fixed", "discount_value": "0"},
        {"code": "NOUSES", "discount_type": "fixed", "discount_value": "5", "max_uses": 0},
        {
            "code": "BACKWARDS",
            "discount_type": "fixed",
            "discount_value": "5",
            "valid_from": "2025-02-01T00:00:00Z",
            "valid_until": "2025-01-01T00:00:00Z",
        },
    ],
)
@pytest.mark.asyncio
async def test_create_coupon_validation(client, body):
    response = await client.post("/api/v1/admin/coupons", json=body, headers=admin_headers())

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_coupon_validates_merged_result(client):
    created = await client.post(
        "/api/v1/admin/coupons",
        json={"code": "FLAT30", "discount_type": "fixed", "discount_value": "150"},
        headers=admin_headers(),
    )
    coupon_id = created.json()["id"]

    # 150 is fine as a fixed amount but not as a percentage
    bad = await client.patch(
        f"/api/v1/admin/coupons/{coupon_id}",
        json={"discount_type": "percentage"},
        headers=admin_headers(),
    )
    good = await client.patch(
        f"/api/v1/admin/coupons/{coupon_id}",
        json={"is_active": False},
        headers=admin_headers(),
    )

    assert bad.status_code == 422
    assert good.status_code == 200
    assert good.json()["is_active"] is False
    assert good.json()["discount_type"] == "fixed"


@pytest.mark.asyncio
async def test_update_coupon_rejects_max_uses_below_used_count(client, store):
    coupon = await store.create_coupon(make_coupon(max_uses=5, used_count=3))

    too_low = await client.patch(
        f"/api/v1/admin/coupons/{coupon.id}", json={"max_uses": 1}, headers=admin_headers()
    )
    at_usage = await client.patch(
        f"/api/v1/admin/coupons/{coupon.id}", json={"max_uses": 3}, headers=admin_headers()
    )

    assert too_low.status_code == 422
    assert at_usage.status_code == 200
    stored = await store.get_coupon(coupon.id)
    assert stored.max_uses == 3
    assert stored.used_count == 3


@pytest.mark.asyncio
async def test_update_missing_coupon_returns_404(client):
    response = await client.patch(
        "/api/v1/admin/coupons/missing", json={"is_active": False}, headers=admin_headers()
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "coupon_not_found"


@pytest.mark.asyncio
async def test_admin_lists_all_orders(client, store):
    plan = await store.create_plan(make_plan())
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers(user_id="a"))
    await client.post("/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers(user_id="b"))

    everything = await client.get("/api/v1/admin/orders", headers=admin_headers())
    only_a = await client.get("/api/v1/admin/orders", params={"user_id": "a"}, headers=admin_headers())

    assert len(everything.json()) == 2
    assert [o["user_id"] for o in only_a.json()] == ["a"]
