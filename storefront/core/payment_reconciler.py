"""
Payment event reconciliation.

Turns payment provider webhook payloads into order and subscription state
changes. Every handler is safe to run more than once for the same event:
state changes are conditional on the current status and subscription
activation is idempotent per order.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storefront.core.exceptions import InvalidEventError
from storefront.core.subscription_service import SubscriptionService
from storefront.repositories.base import StorefrontStore
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.payment_event import (
    PaymentEvent,
    PaymentEventType,
    ReconciliationOutcome,
    ReconciliationResult,
)


PROVIDER_EVENT_TYPES = {
    "checkout.session.completed": PaymentEventType.CHECKOUT_COMPLETED,
    "checkout_completed": PaymentEventType.CHECKOUT_COMPLETED,
    "payment_intent.payment_failed": PaymentEventType.PAYMENT_FAILED,
    "checkout.session.async_payment_failed": PaymentEventType.PAYMENT_FAILED,
    "payment_failed": PaymentEventType.PAYMENT_FAILED,
    "customer.subscription.deleted": PaymentEventType.SUBSCRIPTION_CANCELLED,
    "subscription_cancelled": PaymentEventType.SUBSCRIPTION_CANCELLED,
}


def _ref(value: Any) -> Optional[str]:
    """Provider refs are either an id string or an expanded object with an id."""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


class PaymentEventReconciler:
    """Parses provider events and applies them to the store."""

    @staticmethod
    def parse_event(payload: Dict[str, Any]) -> PaymentEvent:
        """
        Reduce a provider payload to a PaymentEvent.

        A plain payment_failed names the payment by its object id. The same id
        is kept as the session ref so an order that has not recorded a
        payment ref yet is still found by its checkout session.

        Args:
            payload (dict): Decoded webhook body, {"id", "type", "data": {"object": {...}}}

        Returns:
            PaymentEvent: Named event with the cross-reference ids it carries

        Raises:
            InvalidEventError: If the payload has no type or no object id
        """
        if not isinstance(payload, dict):
            raise InvalidEventError("Event payload must be a JSON object")

        provider_type = payload.get("type")
        if not provider_type or not isinstance(provider_type, str):
            raise InvalidEventError("Event payload has no type")

        data = payload.get("data") or {}
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict) or not _ref(obj.get("id")):
            raise InvalidEventError(f"Event '{provider_type}' has no object id")

        event_type = PROVIDER_EVENT_TYPES.get(provider_type, PaymentEventType.UNKNOWN)
        object_id = _ref(obj.get("id"))

        event = PaymentEvent(
            event_type=event_type,
            provider_type=provider_type,
            event_id=_ref(payload.get("id")),
        )

        if provider_type == "payment_intent.payment_failed":
            event.payment_ref = object_id
        elif provider_type == "payment_failed":
            event.payment_ref = object_id
            event.session_ref = object_id
        elif event_type == PaymentEventType.PAYMENT_FAILED:
            event.session_ref = object_id
            event.payment_ref = _ref(obj.get("payment_intent"))
        elif event_type == PaymentEventType.CHECKOUT_COMPLETED:
            event.session_ref = object_id
            event.payment_ref = _ref(obj.get("payment_intent"))
            event.subscription_ref = _ref(obj.get("subscription"))
        elif event_type == PaymentEventType.SUBSCRIPTION_CANCELLED:
            event.subscription_ref = object_id

        return event

    @staticmethod
    async def reconcile(
        store: StorefrontStore,
        event: PaymentEvent,
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Apply one event to the store.

        Storage errors are not caught here: the webhook must answer 5xx so
        the provider redelivers.
        """
        now = now or datetime.now(timezone.utc)
        print(f"[WEBHOOK] Reconciling {event.provider_type} ({event.event_id or 'no id'})")

        if event.event_type == PaymentEventType.CHECKOUT_COMPLETED:
            return await PaymentEventReconciler._checkout_completed(store, event, now)
        if event.event_type == PaymentEventType.PAYMENT_FAILED:
            return await PaymentEventReconciler._payment_failed(store, event)
        if event.event_type == PaymentEventType.SUBSCRIPTION_CANCELLED:
            return await PaymentEventReconciler._subscription_cancelled(store, event, now)

        print(f"[SKIP] Unhandled event type: {event.provider_type}")
        return ReconciliationResult(
            outcome=ReconciliationOutcome.IGNORED,
            event_type=event.event_type,
            detail=f"unhandled event type {event.provider_type}",
        )

    @staticmethod
    async def _checkout_completed(
        store: StorefrontStore,
        event: PaymentEvent,
        now: datetime,
    ) -> ReconciliationResult:
        order = await store.get_order_by_session(event.session_ref) if event.session_ref else None
        if order is None:
            print(f"[WARNING] No order for checkout session {event.session_ref}")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNMATCHED,
                event_type=event.event_type,
                detail="no order for session",
            )

        if order.payment_status == PaymentStatus.FAILED:
            print(f"[SKIP] Order {order.id} already failed, ignoring completion")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.IGNORED,
                event_type=event.event_type,
                order_id=order.id,
                detail="order already failed",
            )

        transitioned = False
        if order.payment_status == PaymentStatus.PENDING:
            updated = await store.transition_order(
                order.id,
                PaymentStatus.PENDING,
                PaymentStatus.COMPLETED,
                payment_intent_ref=event.payment_ref,
            )
            if updated is not None:
                order = updated
                transitioned = True
                print(f"[SUCCESS] Order {order.id} marked completed")
            else:
                # Lost the transition to a concurrent delivery; use its result
                order = await store.get_order(order.id)
                if order is None or order.payment_status != PaymentStatus.COMPLETED:
                    return ReconciliationResult(
                        outcome=ReconciliationOutcome.IGNORED,
                        event_type=event.event_type,
                        order_id=order.id if order else None,
                        detail="order no longer pending",
                    )

        subscription, created = await PaymentEventReconciler._activate(store, order, event, now)

        applied = transitioned or created
        return ReconciliationResult(
            outcome=ReconciliationOutcome.APPLIED if applied else ReconciliationOutcome.DUPLICATE,
            event_type=event.event_type,
            order_id=order.id,
            subscription_id=subscription.id if subscription else None,
            detail=None if subscription else "plan missing, subscription not activated",
        )

    @staticmethod
    async def _activate(store: StorefrontStore, order: Order, event: PaymentEvent, now: datetime):
        plan = await store.get_plan(order.plan_id)
        if plan is None:
            print(f"[ERROR] Plan {order.plan_id} for order {order.id} no longer exists")
            return None, False
        return await SubscriptionService.activate(
            store,
            order,
            plan,
            external_ref=event.subscription_ref,
            now=now,
        )

    @staticmethod
    async def _payment_failed(store: StorefrontStore, event: PaymentEvent) -> ReconciliationResult:
        order = None
        if event.payment_ref:
            order = await store.get_order_by_payment(event.payment_ref)
        if order is None and event.session_ref:
            order = await store.get_order_by_session(event.session_ref)

        if order is None:
            print(f"[WARNING] No order for failed payment {event.payment_ref or event.session_ref}")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNMATCHED,
                event_type=event.event_type,
                detail="no order for payment",
            )

        if order.payment_status == PaymentStatus.FAILED:
            print(f"[SKIP] Order {order.id} already failed")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DUPLICATE,
                event_type=event.event_type,
                order_id=order.id,
            )

        if order.payment_status == PaymentStatus.COMPLETED:
            print(f"[SKIP] Order {order.id} already completed, ignoring failure")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.IGNORED,
                event_type=event.event_type,
                order_id=order.id,
                detail="order already completed",
            )

        payment_ref = event.payment_ref if event.payment_ref != order.payment_session_ref else None
        updated = await store.transition_order(
            order.id,
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            payment_intent_ref=payment_ref,
        )
        if updated is None:
            current = await store.get_order(order.id)
            duplicate = current is not None and current.payment_status == PaymentStatus.FAILED
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DUPLICATE if duplicate else ReconciliationOutcome.IGNORED,
                event_type=event.event_type,
                order_id=order.id,
            )

        print(f"[SUCCESS] Order {order.id} marked failed")
        return ReconciliationResult(
            outcome=ReconciliationOutcome.APPLIED,
            event_type=event.event_type,
            order_id=order.id,
        )

    @staticmethod
    async def _subscription_cancelled(
        store: StorefrontStore,
        event: PaymentEvent,
        now: datetime,
    ) -> ReconciliationResult:
        subscription = await store.get_subscription_by_ref(event.subscription_ref)
        if subscription is None:
            print(f"[WARNING] No subscription for provider ref {event.subscription_ref}")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNMATCHED,
                event_type=event.event_type,
                detail="no subscription for ref",
            )

        cancelled = await store.cancel_subscription(subscription.id, now)
        if cancelled is None:
            print(f"[SKIP] Subscription {subscription.id} already cancelled")
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DUPLICATE,
                event_type=event.event_type,
                order_id=subscription.order_id,
                subscription_id=subscription.id,
            )

        print(f"[SUCCESS] Subscription {subscription.id} cancelled")
        return ReconciliationResult(
            outcome=ReconciliationOutcome.APPLIED,
            event_type=event.event_type,
            order_id=subscription.order_id,
            subscription_id=subscription.id,
        )
