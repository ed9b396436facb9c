"""
Coupon pricing rules.

Pure functions: given a coupon record (or None), the cart's gross amount and
the current time, decide whether the coupon applies and how much it takes
off. Nothing here reads or writes storage; the usage increment is done by the
store when the order is persisted.

All money is held in cents. A percentage discount is rounded half-up to the
cent before it is clamped to the gross amount, so 15% of 99.99 is 15.00 and
not 14.9985.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from storefront.schemas.coupon import Coupon, DiscountType


CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class CouponRejection(str, Enum):
    """Reasons a coupon is not applied, in evaluation order"""
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_EXHAUSTED = "usage_exhausted"
    INVALID_DISCOUNT_CONFIGURATION = "invalid_discount_configuration"


class CouponAccepted(BaseModel):
    discount_amount: Decimal
    accepted: bool = True


class CouponRejected(BaseModel):
    reason: CouponRejection
    accepted: bool = False


CouponVerdict = Union[CouponAccepted, CouponRejected]


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_cents(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def net_amount(gross: Decimal, discount: Decimal) -> Decimal:
    """Gross minus discount, never below zero."""
    return max(ZERO, to_cents(gross) - to_cents(discount))


def compute_discount(discount_type: DiscountType, value: Decimal, gross: Decimal) -> Decimal:
    """
    Discount for a well-formed coupon, clamped to the gross amount.

    Percentage discounts are rounded half-up to cents before clamping.
    """
    gross = to_cents(gross)
    if discount_type == DiscountType.PERCENTAGE:
        computed = to_cents(gross * Decimal(value) / HUNDRED)
    else:
        computed = to_cents(Decimal(value))
    return min(gross, computed)


def evaluate_coupon(
    coupon: Optional[Coupon],
    gross: Decimal,
    now: datetime,
) -> CouponVerdict:
    """
    Decide whether a coupon applies to a cart.

    Checks run in order and stop at the first failure:
    1. coupon exists and is active
    2. now is inside [valid_from, valid_until]
    3. used_count is below max_uses (when capped)
    4. the discount value is sane for its type

    Args:
        coupon (Coupon | None): Coupon looked up by code, None if not found
        gross (Decimal): Cart amount before discount
        now (datetime): Evaluation time

    Returns:
        CouponAccepted | CouponRejected: The verdict
    """
    if coupon is None:
        return CouponRejected(reason=CouponRejection.NOT_FOUND)

    if not coupon.is_active:
        return CouponRejected(reason=CouponRejection.INACTIVE)

    now = as_utc(now)
    if now < as_utc(coupon.valid_from):
        return CouponRejected(reason=CouponRejection.NOT_YET_VALID)

    if coupon.valid_until is not None and now > as_utc(coupon.valid_until):
        return CouponRejected(reason=CouponRejection.EXPIRED)

    if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
        return CouponRejected(reason=CouponRejection.USAGE_EXHAUSTED)

    value = Decimal(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        if value < ZERO or value > HUNDRED:
            return CouponRejected(reason=CouponRejection.INVALID_DISCOUNT_CONFIGURATION)
    elif value < ZERO:
        return CouponRejected(reason=CouponRejection.INVALID_DISCOUNT_CONFIGURATION)

    return CouponAccepted(
        discount_amount=compute_discount(coupon.discount_type, value, gross)
    )
