"""
Service layer for checkout.

Prices a plan with an optional coupon, persists the pending order and hands
back what the storefront needs to send the buyer to the payment page.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from fastapi import HTTPException, status

from storefront.core import config
from storefront.core.coupon_evaluator import (
    CouponAccepted,
    CouponRejected,
    CouponRejection,
    CouponVerdict,
    ZERO,
    evaluate_coupon,
    net_amount,
    to_cents,
)
from storefront.core.exceptions import CouponExhaustedError, StorageUnavailableError
from storefront.repositories.base import StorefrontStore
from storefront.schemas.checkout import CheckoutResult, PricePreview
from storefront.schemas.coupon import Coupon, normalize_coupon_code
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan


# Reported when the coupon lookup itself failed and checkout went ahead without it
COUPON_UNAVAILABLE = "unavailable"


def new_payment_session_ref() -> str:
    return f"cs_{uuid.uuid4().hex}"


def build_redirect_handle(session_ref: str) -> str:
    separator = "&" if "?" in config.CHECKOUT_RETURN_URL else "?"
    return f"{config.CHECKOUT_RETURN_URL}{separator}session_id={session_ref}"


class CheckoutService:
    """
    Order builder.

    Invalid coupons do not block checkout by default: the order goes ahead at
    full price and the caller is told why the coupon was not applied. With
    strict coupons enabled the rejection fails the call instead.
    """

    @staticmethod
    async def get_purchasable_plan(store: StorefrontStore, plan_id: str) -> Plan:
        """
        Retrieve an active plan by id.

        Raises:
            HTTPException 404: If the plan does not exist or is inactive
        """
        plan = await store.get_plan(plan_id)
        if plan is None or not plan.is_active:
            print(f"[CHECKOUT] Plan not found or inactive: {plan_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="plan_not_found"
            )
        return plan

    @staticmethod
    async def _evaluate(
        store: StorefrontStore,
        coupon_code: Optional[str],
        gross: Decimal,
        now: datetime,
    ) -> Tuple[Optional[Coupon], Optional[CouponVerdict], Optional[str]]:
        """
        Look up and evaluate a coupon code.

        Returns:
            tuple: (coupon, verdict, rejection) where rejection is the reason
                   string reported to the caller, None when applied or absent
        """
        if not coupon_code:
            return None, None, None

        try:
            coupon = await store.get_coupon_by_code(coupon_code)
        except StorageUnavailableError as e:
            print(f"[WARNING] Coupon lookup failed, continuing without coupon: {e}")
            return None, None, COUPON_UNAVAILABLE

        verdict = evaluate_coupon(coupon, gross, now)
        if isinstance(verdict, CouponRejected):
            print(f"[CHECKOUT] Coupon not applied: {verdict.reason.value}")
            return coupon, verdict, verdict.reason.value
        return coupon, verdict, None

    @staticmethod
    def _reject_if_strict(strict: bool, rejection: Optional[str]) -> None:
        # A degraded coupon lookup never blocks checkout, strict or not
        if strict and rejection is not None and rejection != COUPON_UNAVAILABLE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "coupon_rejected", "reason": rejection}
            )

    @staticmethod
    async def preview_price(
        store: StorefrontStore,
        plan_id: str,
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PricePreview:
        """
        Price a plan with an optional coupon without writing anything.

        Never consumes a coupon use.
        """
        now = now or datetime.now(timezone.utc)
        coupon_code = normalize_coupon_code(coupon_code) if coupon_code else None

        plan = await CheckoutService.get_purchasable_plan(store, plan_id)
        gross = to_cents(plan.price)

        _, verdict, rejection = await CheckoutService._evaluate(store, coupon_code, gross, now)
        discount = verdict.discount_amount if isinstance(verdict, CouponAccepted) else ZERO

        return PricePreview(
            plan_id=plan.id,
            gross_amount=gross,
            discount_amount=discount,
            net_amount=net_amount(gross, discount),
            currency=config.DEFAULT_CURRENCY,
            coupon_code=coupon_code,
            coupon_applied=isinstance(verdict, CouponAccepted),
            coupon_rejection=rejection,
        )

    @staticmethod
    async def start_checkout(
        store: StorefrontStore,
        user_id: str,
        plan_id: str,
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None,
        strict_coupons: Optional[bool] = None,
    ) -> CheckoutResult:
        """
        Create a pending order for a plan, applying a coupon when valid.

        Flow:
        1. Resolve the plan (must exist and be active)
        2. Look up and evaluate the coupon, if any
        3. Persist the pending order; the store redeems the coupon in the
           same atomic unit, conditional on remaining uses
        4. If the redemption lost a race, persist the order at full price

        Args:
            store (StorefrontStore): Persistence backend
            user_id (str): Authenticated user id
            plan_id (str): Plan being bought
            coupon_code (str, optional): Code typed by the buyer
            now (datetime, optional): Evaluation time, defaults to now
            strict_coupons (bool, optional): Fail on any coupon rejection other
                than an unavailable lookup; defaults to STRICT_COUPONS

        Returns:
            CheckoutResult: Pending order, redirect handle and coupon feedback

        Raises:
            HTTPException 404: plan_not_found
            HTTPException 400: coupon_rejected (strict mode only)
            StorageUnavailableError: If the order could not be persisted
        """
        now = now or datetime.now(timezone.utc)
        strict = config.STRICT_COUPONS if strict_coupons is None else strict_coupons
        coupon_code = normalize_coupon_code(coupon_code) if coupon_code else None

        print(f"[CHECKOUT] User {user_id} - plan {plan_id} - coupon {'present' if coupon_code else 'none'}")

        plan = await CheckoutService.get_purchasable_plan(store, plan_id)
        gross = to_cents(plan.price)

        coupon, verdict, rejection = await CheckoutService._evaluate(store, coupon_code, gross, now)
        CheckoutService._reject_if_strict(strict, rejection)

        applied = isinstance(verdict, CouponAccepted)
        discount = verdict.discount_amount if applied else ZERO

        session_ref = new_payment_session_ref()
        order = Order(
            id=str(uuid.uuid4()),
            user_id=user_id,
            plan_id=plan.id,
            gross_amount=gross,
            discount_amount=discount,
            net_amount=net_amount(gross, discount),
            currency=config.DEFAULT_CURRENCY,
            coupon_code=coupon.code if applied else None,
            payment_status=PaymentStatus.PENDING,
            payment_session_ref=session_ref,
            created_at=now,
        )

        try:
            order = await store.create_order(order, redeem_coupon_id=coupon.id if applied else None)
        except CouponExhaustedError:
            # Another checkout took the last use between evaluation and insert
            rejection = CouponRejection.USAGE_EXHAUSTED.value
            print(f"[CHECKOUT] Coupon lost redemption race: {rejection}")
            CheckoutService._reject_if_strict(strict, rejection)
            applied = False
            order = order.model_copy(update={
                "discount_amount": ZERO,
                "net_amount": gross,
                "coupon_code": None,
            })
            order = await store.create_order(order)

        print(
            f"[SUCCESS] Order {order.id} created - gross {order.gross_amount} "
            f"discount {order.discount_amount} net {order.net_amount} {order.currency}"
        )

        return CheckoutResult(
            order=order,
            redirect_handle=build_redirect_handle(session_ref),
            coupon_applied=applied,
            coupon_rejection=rejection,
        )
