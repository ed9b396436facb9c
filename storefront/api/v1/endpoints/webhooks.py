"""
Webhook endpoints for receiving payment provider events.

The provider calls this endpoint for every checkout outcome and every
subscription cancellation. Processing is idempotent, so the provider may
redeliver freely; storage failures answer 500 to make it do so.
"""
import json
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from storefront.core import config
from storefront.core.dependencies import get_store
from storefront.core.exceptions import InvalidEventError, StorageUnavailableError
from storefront.core.payment_reconciler import PaymentEventReconciler
from storefront.repositories.base import StorefrontStore

router = APIRouter()


def verify_webhook_token(authorization: str = Header(None)) -> None:
    """
    Check the provider's shared secret.

    Authorization Header Format: Authorization: Bearer {WEBHOOK_SECRET}

    Raises:
        HTTPException 401: If the header is missing, malformed or wrong
        HTTPException 500: If WEBHOOK_SECRET is not configured
    """
    if not authorization:
        print("[ERROR] No Authorization header provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header"
        )

    if not authorization.startswith("Bearer "):
        print("[ERROR] Invalid Authorization header format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer {token}"
        )

    provided_token = authorization.replace("Bearer ", "", 1).strip()

    if not config.WEBHOOK_SECRET:
        print("[ERROR] WEBHOOK_SECRET not configured in environment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook authentication not configured"
        )

    if provided_token != config.WEBHOOK_SECRET:
        print("[ERROR] Invalid webhook token provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook token"
        )


@router.post("/payments")
async def handle_payment_event(
    request: Request,
    _: None = Depends(verify_webhook_token),
    store: StorefrontStore = Depends(get_store),
):
    """
    Handle a payment provider event.

    Flow:
    1. Validate webhook authentication token
    2. Parse the payload into a named event
    3. Reconcile it against orders and subscriptions
    4. Return the outcome (applied, duplicate, unmatched or ignored)

    Unmatched and unknown events answer 200 so the provider stops retrying.

    Raises:
        HTTPException 401: If authorization token is invalid
        HTTPException 400: If payload is not JSON or has no type / object id
        HTTPException 500: If storage failed (the provider will redeliver)
    """
    print("\n" + "=" * 70)
    print("WEBHOOK RECEIVED - Payment Event")
    print("-" * 70)

    body = await request.body()
    print(f"[INFO] Payload size: {len(body)} bytes")

    try:
        payload = json.loads(body)
    except ValueError:
        print("[ERROR] Payload is not valid JSON")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payload is not valid JSON"
        )

    try:
        event = PaymentEventReconciler.parse_event(payload)
    except InvalidEventError as e:
        print(f"[ERROR] Invalid event: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    print(f"[INFO] Event type: {event.provider_type} -> {event.event_type.value}")

    try:
        result = await PaymentEventReconciler.reconcile(store, event)
    except StorageUnavailableError as e:
        print(f"[ERROR] Storage unavailable while reconciling {event.provider_type}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="storage_unavailable"
        )

    print(f"[RESULT] {result.outcome.value}")
    print("=" * 70 + "\n")

    return {"status": result.outcome.value, **result.model_dump(mode="json")}


@router.get("/health")
async def webhook_health():
    """
    Webhook health check endpoint.

    Used by monitoring to confirm the webhook endpoint is reachable and
    configured.
    """
    return {
        "status": "healthy",
        "webhook_configured": bool(config.WEBHOOK_SECRET),
        "endpoints": {
            "payments": "/api/v1/webhooks/payments"
        }
    }
