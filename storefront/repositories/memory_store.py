"""
In-process store for local development and tests.

Records live in dicts keyed by id. Every check-and-set below runs without an
await in between, so concurrent coroutines cannot interleave inside one.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storefront.core.exceptions import CouponExhaustedError, DuplicateRecordError
from storefront.repositories.base import StorefrontStore
from storefront.schemas.coupon import Coupon
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan
from storefront.schemas.subscription import Subscription, SubscriptionStatus


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _newest_first(records):
    return sorted(records, key=lambda r: r.created_at or _EPOCH, reverse=True)


class MemoryStore(StorefrontStore):
    """Dict-backed StorefrontStore."""

    def __init__(self):
        self.plans: Dict[str, Plan] = {}
        self.coupons: Dict[str, Coupon] = {}
        self.orders: Dict[str, Order] = {}
        self.subscriptions: Dict[str, Subscription] = {}
        self.revoked_sessions: Dict[str, Optional[datetime]] = {}

    # --- Plans ---

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        plan = self.plans.get(plan_id)
        return plan.model_copy() if plan else None

    async def list_plans(self, active_only: bool = True) -> List[Plan]:
        plans = [p for p in self.plans.values() if p.is_active or not active_only]
        return [p.model_copy() for p in sorted(plans, key=lambda p: p.display_order)]

    async def create_plan(self, plan: Plan) -> Plan:
        self.plans[plan.id] = plan.model_copy()
        return plan.model_copy()

    async def update_plan(self, plan_id: str, changes: Dict[str, Any]) -> Optional[Plan]:
        plan = self.plans.get(plan_id)
        if plan is None:
            return None
        self.plans[plan_id] = plan.model_copy(update=changes)
        return self.plans[plan_id].model_copy()

    async def plan_has_orders(self, plan_id: str) -> bool:
        return any(o.plan_id == plan_id for o in self.orders.values())

    # --- Coupons ---

    def _find_coupon(self, code: str) -> Optional[Coupon]:
        code = code.strip().upper()
        for coupon in self.coupons.values():
            if coupon.code.upper() == code:
                return coupon
        return None

    async def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        coupon = self._find_coupon(code)
        return coupon.model_copy() if coupon else None

    async def get_coupon(self, coupon_id: str) -> Optional[Coupon]:
        coupon = self.coupons.get(coupon_id)
        return coupon.model_copy() if coupon else None

    async def list_coupons(self) -> List[Coupon]:
        return [c.model_copy() for c in _newest_first(self.coupons.values())]

    async def create_coupon(self, coupon: Coupon) -> Coupon:
        if self._find_coupon(coupon.code) is not None:
            raise DuplicateRecordError(f"Coupon code '{coupon.code}' already exists")
        self.coupons[coupon.id] = coupon.model_copy()
        return coupon.model_copy()

    async def update_coupon(self, coupon_id: str, changes: Dict[str, Any]) -> Optional[Coupon]:
        coupon = self.coupons.get(coupon_id)
        if coupon is None:
            return None
        self.coupons[coupon_id] = coupon.model_copy(update=changes)
        return self.coupons[coupon_id].model_copy()

    # --- Orders ---

    async def create_order(self, order: Order, redeem_coupon_id: Optional[str] = None) -> Order:
        if redeem_coupon_id is not None:
            coupon = self.coupons.get(redeem_coupon_id)
            if (
                coupon is None
                or not coupon.is_active
                or (coupon.max_uses is not None and coupon.used_count >= coupon.max_uses)
            ):
                raise CouponExhaustedError(redeem_coupon_id)
            self.coupons[redeem_coupon_id] = coupon.model_copy(
                update={"used_count": coupon.used_count + 1}
            )
        self.orders[order.id] = order.model_copy()
        return order.model_copy()

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        return order.model_copy() if order else None

    async def get_order_by_session(self, session_ref: str) -> Optional[Order]:
        for order in self.orders.values():
            if order.payment_session_ref == session_ref:
                return order.model_copy()
        return None

    async def get_order_by_payment(self, payment_ref: str) -> Optional[Order]:
        for order in self.orders.values():
            if order.payment_intent_ref == payment_ref:
                return order.model_copy()
        return None

    async def list_orders(self, user_id: Optional[str] = None) -> List[Order]:
        orders = [o for o in self.orders.values() if user_id is None or o.user_id == user_id]
        return [o.model_copy() for o in _newest_first(orders)]

    async def transition_order(
        self,
        order_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_ref: Optional[str] = None,
    ) -> Optional[Order]:
        order = self.orders.get(order_id)
        if order is None or order.payment_status != from_status:
            return None
        changes = {"payment_status": to_status, "updated_at": datetime.now(timezone.utc)}
        if payment_intent_ref is not None:
            changes["payment_intent_ref"] = payment_intent_ref
        self.orders[order_id] = order.model_copy(update=changes)
        return self.orders[order_id].model_copy()

    # --- Subscriptions ---

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        for existing in self.subscriptions.values():
            if existing.order_id == subscription.order_id:
                raise DuplicateRecordError(
                    f"Subscription for order {subscription.order_id} already exists"
                )
        self.subscriptions[subscription.id] = subscription.model_copy()
        return subscription.model_copy()

    async def get_subscription_by_order(self, order_id: str) -> Optional[Subscription]:
        for subscription in self.subscriptions.values():
            if subscription.order_id == order_id:
                return subscription.model_copy()
        return None

    async def get_subscription_by_ref(self, external_ref: str) -> Optional[Subscription]:
        for subscription in self.subscriptions.values():
            if subscription.external_subscription_ref == external_ref:
                return subscription.model_copy()
        return None

    async def list_subscriptions(self, user_id: str) -> List[Subscription]:
        subs = [s for s in self.subscriptions.values() if s.user_id == user_id]
        return [s.model_copy() for s in _newest_first(subs)]

    async def cancel_subscription(
        self,
        subscription_id: str,
        cancelled_at: datetime,
    ) -> Optional[Subscription]:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return None
        self.subscriptions[subscription_id] = subscription.model_copy(
            update={"status": SubscriptionStatus.CANCELLED, "cancelled_at": cancelled_at}
        )
        return self.subscriptions[subscription_id].model_copy()

    # --- Sessions ---

    async def revoke_session(self, session_id: str, expires_at: Optional[datetime]) -> None:
        self.revoked_sessions[session_id] = expires_at

    async def is_session_revoked(self, session_id: str) -> bool:
        return session_id in self.revoked_sessions
