"""
Test suite for the payment webhook and the subscription read endpoints.
"""
import pytest

from storefront.core.exceptions import StorageUnavailableError

from conftest import auth_headers, make_plan


async def start_checkout(client, store, user_id="user-1", duration_months=1):
    plan = await store.create_plan(make_plan(duration_months=duration_months))
    response = await client.post(
        "/api/v1/checkout", json={"plan_id": plan.id}, headers=auth_headers(user_id=user_id)
    )
    assert response.status_code == 201
    order = await store.get_order(response.json()["order_id"])
    return plan, order


def completed_event(session_ref, subscription_ref="sub_abc"):
    return {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_ref,
                "payment_intent": "pi_abc",
                "subscription": subscription_ref,
            }
        },
    }


@pytest.mark.asyncio
async def test_webhook_requires_token(client):
    response = await client.post("/api/v1/webhooks/payments", json=completed_event("cs_x"))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_webhook_rejects_wrong_token(client):
    response = await client.post(
        "/api/v1/webhooks/payments",
        json=completed_event("cs_x"),
        headers={"Authorization": "Bearer wrong"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_webhook_rejects_malformed_payload(client, webhook_headers):
    response = await client.post(
        "/api/v1/webhooks/payments",
        content=b"{not json",
        headers={**webhook_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/webhooks/payments",
        json={"data": {"object": {"id": "cs_1"}}},
        headers=webhook_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_completed_webhook_activates_subscription(client, store, webhook_headers):
    """
    Checkout, then the provider reports completion twice.

    Validates:
    - First delivery is applied, second is a duplicate (both 200)
    - /subscriptions/me returns the new subscription with its plan
    """
    plan, order = await start_checkout(client, store)
    event = completed_event(order.payment_session_ref)

    first = await client.post("/api/v1/webhooks/payments", json=event, headers=webhook_headers)
    second = await client.post("/api/v1/webhooks/payments", json=event, headers=webhook_headers)

    assert first.status_code == 200
    assert first.json()["status"] == "applied"
    assert second.status_code == 200
    assert second.json()["status"] == "duplicate"

    response = await client.get("/api/v1/subscriptions/me", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] == order.id
    assert data["status"] == "active"
    assert data["plan"]["id"] == plan.id

    history = await client.get("/api/v1/subscriptions/me/history", headers=auth_headers())
    assert len(history.json()) == 1


@pytest.mark.asyncio
async def test_unmatched_and_unknown_events_answer_200(client, webhook_headers):
    unmatched = await client.post(
        "/api/v1/webhooks/payments", json=completed_event("cs_nobody"), headers=webhook_headers
    )
    unknown = await client.post(
        "/api/v1/webhooks/payments",
        json={"type": "invoice.paid", "data": {"object": {"id": "in_1"}}},
        headers=webhook_headers,
    )

    assert unmatched.status_code == 200
    assert unmatched.json()["status"] == "unmatched"
    assert unknown.status_code == 200
    assert unknown.json()["status"] == "ignored"


@pytest.mark.asyncio
async def test_cancelled_webhook_ends_access(client, store, webhook_headers):
    _, order = await start_checkout(client, store)
    await client.post(
        "/api/v1/webhooks/payments",
        json=completed_event(order.payment_session_ref, "sub_cancel_me"),
        headers=webhook_headers,
    )

    response = await client.post(
        "/api/v1/webhooks/payments",
        json={"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_cancel_me"}}},
        headers=webhook_headers,
    )

    assert response.json()["status"] == "applied"
    me = await client.get("/api/v1/subscriptions/me", headers=auth_headers())
    assert me.status_code == 404


@pytest.mark.asyncio
async def test_webhook_storage_error_returns_500(client, store, webhook_headers, monkeypatch):
    async def broken_lookup(session_ref):
        raise StorageUnavailableError("sheets timeout")

    monkeypatch.setattr(store, "get_order_by_session", broken_lookup)

    response = await client.post(
        "/api/v1/webhooks/payments", json=completed_event("cs_any"), headers=webhook_headers
    )

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_webhook_health(client):
    response = await client.get("/api/v1/webhooks/health")

    assert response.status_code == 200
    assert response.json()["webhook_configured"] is True
