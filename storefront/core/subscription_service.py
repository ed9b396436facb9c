"""
Service layer for subscription management.

This module turns completed orders into subscriptions and answers the
"what am I subscribed to" questions. Subscriptions are only created here and
only cancelled by payment provider events.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta

from storefront.core.coupon_evaluator import as_utc
from storefront.core.exceptions import DuplicateRecordError
from storefront.repositories.base import StorefrontStore
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan
from storefront.schemas.subscription import Subscription, SubscriptionStatus


def add_months(start: datetime, months: int) -> datetime:
    """
    Calendar-month arithmetic.

    Jan 31 + 1 month is Feb 28 (or 29): a day that does not exist in the
    target month is clamped to that month's last day.
    """
    return start + relativedelta(months=months)


class SubscriptionService:
    """
    Service class for subscription-related operations.

    All methods are static and take the store explicitly, so endpoints and
    the payment reconciler share one implementation.
    """

    @staticmethod
    async def activate(
        store: StorefrontStore,
        order: Order,
        plan: Plan,
        external_ref: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Subscription, bool]:
        """
        Create the subscription paid for by a completed order.

        Idempotent per order: if a subscription already exists for the order
        it is returned untouched.

        Args:
            store (StorefrontStore): Persistence backend
            order (Order): The completed order
            plan (Plan): The plan the order bought
            external_ref (str, optional): Provider's subscription id
            now (datetime, optional): Start of the entitlement, defaults to now

        Returns:
            tuple: (Subscription, created) where created is False for replays

        Raises:
            ValueError: If the order is not completed or the plan has no duration
            StorageUnavailableError: If the store fails (caller must retry)
        """
        if order.payment_status != PaymentStatus.COMPLETED:
            raise ValueError(f"Order {order.id} is not completed")
        if plan.duration_months <= 0:
            raise ValueError(f"Plan {plan.id} has invalid duration {plan.duration_months}")

        existing = await store.get_subscription_by_order(order.id)
        if existing:
            print(f"[SKIP] Subscription {existing.id} already exists for order {order.id}")
            return existing, False

        start = as_utc(now or datetime.now(timezone.utc))
        subscription = Subscription(
            id=str(uuid.uuid4()),
            user_id=order.user_id,
            plan_id=plan.id,
            order_id=order.id,
            status=SubscriptionStatus.ACTIVE,
            start_date=start,
            end_date=add_months(start, plan.duration_months),
            external_subscription_ref=external_ref,
            created_at=start,
        )

        try:
            created = await store.create_subscription(subscription)
        except DuplicateRecordError:
            # A concurrent delivery of the same event won the insert
            winner = await store.get_subscription_by_order(order.id)
            if winner is None:
                raise
            print(f"[SKIP] Subscription for order {order.id} created concurrently ({winner.id})")
            return winner, False

        print(
            f"[SUCCESS] Created subscription {created.id} for user {order.user_id} - "
            f"Plan: {plan.name} until {created.end_date.isoformat()}"
        )
        return created, True

    @staticmethod
    async def get_active_subscription(
        store: StorefrontStore,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Subscription | None:
        """
        Get the user's currently active subscription.

        A subscription is considered active if:
        - Status is 'active'
        - Its period has not ended yet

        When several overlap, the one ending last wins.
        """
        now = as_utc(now or datetime.now(timezone.utc))
        active = [
            s for s in await store.list_subscriptions(user_id)
            if s.status == SubscriptionStatus.ACTIVE and as_utc(s.end_date) > now
        ]
        if not active:
            return None
        return max(active, key=lambda s: as_utc(s.end_date))

    @staticmethod
    async def get_subscription_history(
        store: StorefrontStore,
        user_id: str,
    ) -> list[Subscription]:
        """All subscriptions for a user (active, cancelled, lapsed), newest first."""
        return await store.list_subscriptions(user_id)
