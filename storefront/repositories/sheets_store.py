"""
Store backed by a Google Apps Script web app fronting a spreadsheet.

Protocol (one endpoint, action-dispatched):
- reads:  GET  <script_url>?action=<name>&<params>
- writes: POST <script_url> form fields action=<name>, payload=<json>

Every response is JSON: {"success": bool, "data": ..., "message": str, "code": str}.
The script serialises createOrder/transitionOrder/cancelSubscription with its
LockService, which is what makes coupon redemption and state transitions
conditional on this backend.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from storefront.core.exceptions import (
    CouponExhaustedError,
    DuplicateRecordError,
    StorageUnavailableError,
)
from storefront.repositories.base import StorefrontStore
from storefront.schemas.coupon import Coupon
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan
from storefront.schemas.subscription import Subscription


class SheetsStore(StorefrontStore):
    """httpx client for the spreadsheet backend."""

    def __init__(self, script_url: str, timeout: float = 15.0, client: httpx.AsyncClient | None = None):
        if not script_url:
            raise ValueError("GOOGLE_SHEETS_SCRIPT_URL is missing")
        self.script_url = script_url
        # Apps Script answers through a redirect to googleusercontent.com
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        print(f"[SHEETS] Using Apps Script endpoint: {script_url.split('/exec')[0]}/exec")

    async def close(self) -> None:
        await self.client.aclose()

    async def _call(self, action: str, params: Dict[str, Any] | None = None, payload: Any = None) -> Dict[str, Any]:
        """
        Run one script action and return the decoded envelope.

        Raises:
            StorageUnavailableError: On transport errors, HTTP errors or non-JSON replies
        """
        try:
            if payload is None:
                query = {"action": action}
                query.update({k: v for k, v in (params or {}).items() if v is not None})
                response = await self.client.get(self.script_url, params=query)
            else:
                form = {"action": action, "payload": json.dumps(payload, default=str)}
                response = await self.client.post(self.script_url, data=form)
            response.raise_for_status()
        except httpx.HTTPError as e:
            print(f"[ERROR] Sheets action '{action}' failed: {type(e).__name__}: {e}")
            raise StorageUnavailableError(f"Sheets action '{action}' failed: {e}") from e

        try:
            envelope = response.json()
        except ValueError as e:
            print(f"[ERROR] Sheets action '{action}' returned non-JSON: {response.text[:200]}")
            raise StorageUnavailableError(f"Sheets action '{action}' returned non-JSON") from e

        if not isinstance(envelope, dict):
            raise StorageUnavailableError(f"Sheets action '{action}' returned an unexpected body")
        return envelope

    async def _fetch(self, action: str, **params) -> Any:
        """Run a read action; None when the script reports not_found."""
        envelope = await self._call(action, params=params)
        if envelope.get("success"):
            return envelope.get("data")
        if envelope.get("code") == "not_found":
            return None
        raise StorageUnavailableError(envelope.get("message") or f"Sheets action '{action}' failed")

    async def _write(self, action: str, payload: Dict[str, Any]) -> Any:
        envelope = await self._call(action, payload=payload)
        if envelope.get("success"):
            return envelope.get("data")

        code = envelope.get("code")
        message = envelope.get("message") or f"Sheets action '{action}' failed"
        if code in ("not_found", "conflict"):
            return None
        if code == "duplicate":
            raise DuplicateRecordError(message)
        if code == "coupon_exhausted":
            raise CouponExhaustedError(payload.get("redeemCouponId") or "")
        raise StorageUnavailableError(message)

    @staticmethod
    def _dump(record) -> Dict[str, Any]:
        return record.model_dump(mode="json")

    # --- Plans ---

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        data = await self._fetch("getPlan", planId=plan_id)
        return Plan.model_validate(data) if data else None

    async def list_plans(self, active_only: bool = True) -> List[Plan]:
        data = await self._fetch("getPlans", activeOnly=str(active_only).lower()) or []
        plans = [Plan.model_validate(item) for item in data]
        if active_only:
            plans = [p for p in plans if p.is_active]
        return sorted(plans, key=lambda p: p.display_order)

    async def create_plan(self, plan: Plan) -> Plan:
        data = await self._write("createPlan", {"plan": self._dump(plan)})
        return Plan.model_validate(data or self._dump(plan))

    async def update_plan(self, plan_id: str, changes: Dict[str, Any]) -> Optional[Plan]:
        data = await self._write("updatePlan", {"planId": plan_id, "updates": changes})
        return Plan.model_validate(data) if data else None

    async def plan_has_orders(self, plan_id: str) -> bool:
        data = await self._fetch("planHasOrders", planId=plan_id)
        return bool(data)

    # --- Coupons ---

    async def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        data = await self._fetch("getCouponByCode", code=code.strip().upper())
        return Coupon.model_validate(data) if data else None

    async def get_coupon(self, coupon_id: str) -> Optional[Coupon]:
        data = await self._fetch("getCoupon", couponId=coupon_id)
        return Coupon.model_validate(data) if data else None

    async def list_coupons(self) -> List[Coupon]:
        data = await self._fetch("getCoupons") or []
        return [Coupon.model_validate(item) for item in data]

    async def create_coupon(self, coupon: Coupon) -> Coupon:
        data = await self._write("createCoupon", {"coupon": self._dump(coupon)})
        return Coupon.model_validate(data or self._dump(coupon))

    async def update_coupon(self, coupon_id: str, changes: Dict[str, Any]) -> Optional[Coupon]:
        data = await self._write("updateCoupon", {"couponId": coupon_id, "updates": changes})
        return Coupon.model_validate(data) if data else None

    # --- Orders ---

    async def create_order(self, order: Order, redeem_coupon_id: Optional[str] = None) -> Order:
        data = await self._write(
            "createOrder",
            {"order": self._dump(order), "redeemCouponId": redeem_coupon_id},
        )
        return Order.model_validate(data or self._dump(order))

    async def get_order(self, order_id: str) -> Optional[Order]:
        data = await self._fetch("getOrder", orderId=order_id)
        return Order.model_validate(data) if data else None

    async def get_order_by_session(self, session_ref: str) -> Optional[Order]:
        data = await self._fetch("getOrderBySession", sessionRef=session_ref)
        return Order.model_validate(data) if data else None

    async def get_order_by_payment(self, payment_ref: str) -> Optional[Order]:
        data = await self._fetch("getOrderByPayment", paymentRef=payment_ref)
        return Order.model_validate(data) if data else None

    async def list_orders(self, user_id: Optional[str] = None) -> List[Order]:
        data = await self._fetch("getOrders", userId=user_id) or []
        return [Order.model_validate(item) for item in data]

    async def transition_order(
        self,
        order_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_ref: Optional[str] = None,
    ) -> Optional[Order]:
        data = await self._write(
            "transitionOrder",
            {
                "orderId": order_id,
                "fromStatus": from_status.value,
                "toStatus": to_status.value,
                "paymentIntentRef": payment_intent_ref,
            },
        )
        return Order.model_validate(data) if data else None

    # --- Subscriptions ---

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        data = await self._write("createSubscription", {"subscription": self._dump(subscription)})
        return Subscription.model_validate(data or self._dump(subscription))

    async def get_subscription_by_order(self, order_id: str) -> Optional[Subscription]:
        data = await self._fetch("getSubscriptionByOrder", orderId=order_id)
        return Subscription.model_validate(data) if data else None

    async def get_subscription_by_ref(self, external_ref: str) -> Optional[Subscription]:
        data = await self._fetch("getSubscriptionByRef", subscriptionRef=external_ref)
        return Subscription.model_validate(data) if data else None

    async def list_subscriptions(self, user_id: str) -> List[Subscription]:
        data = await self._fetch("getSubscriptions", userId=user_id) or []
        return [Subscription.model_validate(item) for item in data]

    async def cancel_subscription(
        self,
        subscription_id: str,
        cancelled_at: datetime,
    ) -> Optional[Subscription]:
        data = await self._write(
            "cancelSubscription",
            {"subscriptionId": subscription_id, "cancelledAt": cancelled_at.isoformat()},
        )
        return Subscription.model_validate(data) if data else None

    # --- Sessions ---

    async def revoke_session(self, session_id: str, expires_at: Optional[datetime]) -> None:
        await self._write(
            "revokeSession",
            {"sessionId": session_id, "expiresAt": expires_at.isoformat() if expires_at else None},
        )

    async def is_session_revoked(self, session_id: str) -> bool:
        data = await self._fetch("isSessionRevoked", sessionId=session_id)
        return bool(data)
