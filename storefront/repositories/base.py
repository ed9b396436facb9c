"""
Persistence port for the storefront.

Every backend (Supabase Postgres, Google Sheets, in-memory) implements this
interface; services only ever talk to a StorefrontStore and never branch on
which backend is configured.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from storefront.schemas.coupon import Coupon
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan
from storefront.schemas.subscription import Subscription


class StorefrontStore(ABC):
    """Interface for plan, coupon, order and subscription persistence."""

    # --- Plans ---

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        """Get a plan by id, active or not. None if missing."""

    @abstractmethod
    async def list_plans(self, active_only: bool = True) -> List[Plan]:
        """List plans ordered by display_order."""

    @abstractmethod
    async def create_plan(self, plan: Plan) -> Plan:
        """Persist a new plan."""

    @abstractmethod
    async def update_plan(self, plan_id: str, changes: Dict[str, Any]) -> Optional[Plan]:
        """Apply field changes to a plan. None if missing."""

    @abstractmethod
    async def plan_has_orders(self, plan_id: str) -> bool:
        """Whether any order references this plan."""

    # --- Coupons ---

    @abstractmethod
    async def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        """Get a coupon by code, matched case-insensitively. None if missing."""

    @abstractmethod
    async def list_coupons(self) -> List[Coupon]:
        """List all coupons, newest first."""

    @abstractmethod
    async def create_coupon(self, coupon: Coupon) -> Coupon:
        """
        Persist a new coupon.

        Raises:
            DuplicateRecordError: If the code is already taken
        """

    @abstractmethod
    async def update_coupon(self, coupon_id: str, changes: Dict[str, Any]) -> Optional[Coupon]:
        """Apply field changes to a coupon. None if missing."""

    @abstractmethod
    async def get_coupon(self, coupon_id: str) -> Optional[Coupon]:
        """Get a coupon by id. None if missing."""

    # --- Orders ---

    @abstractmethod
    async def create_order(self, order: Order, redeem_coupon_id: Optional[str] = None) -> Order:
        """
        Persist a pending order, optionally redeeming a coupon in the same unit.

        When redeem_coupon_id is given the coupon's used_count is incremented
        only if it is still below max_uses; the increment and the insert
        either both happen or neither does.

        Raises:
            CouponExhaustedError: If the coupon has no remaining uses
        """

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by id."""

    @abstractmethod
    async def get_order_by_session(self, session_ref: str) -> Optional[Order]:
        """Get an order by its payment session reference."""

    @abstractmethod
    async def get_order_by_payment(self, payment_ref: str) -> Optional[Order]:
        """Get an order by its payment intent reference."""

    @abstractmethod
    async def list_orders(self, user_id: Optional[str] = None) -> List[Order]:
        """List orders newest first, optionally for one user."""

    @abstractmethod
    async def transition_order(
        self,
        order_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_ref: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Move an order between payment states if it is still in from_status.

        Returns:
            Order | None: The updated order, or None if it was not in from_status
        """

    # --- Subscriptions ---

    @abstractmethod
    async def create_subscription(self, subscription: Subscription) -> Subscription:
        """
        Persist a new subscription.

        Raises:
            DuplicateRecordError: If a subscription already exists for the order
        """

    @abstractmethod
    async def get_subscription_by_order(self, order_id: str) -> Optional[Subscription]:
        """Get the subscription created for an order."""

    @abstractmethod
    async def get_subscription_by_ref(self, external_ref: str) -> Optional[Subscription]:
        """Get a subscription by the provider's subscription id."""

    @abstractmethod
    async def list_subscriptions(self, user_id: str) -> List[Subscription]:
        """List a user's subscriptions, newest first."""

    @abstractmethod
    async def cancel_subscription(
        self,
        subscription_id: str,
        cancelled_at: datetime,
    ) -> Optional[Subscription]:
        """
        Cancel a subscription if it is still active.

        Returns:
            Subscription | None: The updated subscription, or None if it was not active
        """

    # --- Sessions ---

    @abstractmethod
    async def revoke_session(self, session_id: str, expires_at: Optional[datetime]) -> None:
        """Record that an auth session was logged out."""

    @abstractmethod
    async def is_session_revoked(self, session_id: str) -> bool:
        """Whether an auth session was logged out."""

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None
