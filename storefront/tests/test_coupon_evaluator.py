"""
Test suite for the coupon pricing rules.
Covers each rejection reason, the evaluation order and discount rounding/clamping.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.core.coupon_evaluator import (
    CouponAccepted,
    CouponRejected,
    CouponRejection,
    compute_discount,
    evaluate_coupon,
    net_amount,
)
from storefront.schemas.coupon import DiscountType

from conftest import NOW, make_coupon


def test_missing_coupon_is_not_found():
    verdict = evaluate_coupon(None, Decimal("100"), NOW)

    assert isinstance(verdict, CouponRejected)
    assert verdict.reason == CouponRejection.NOT_FOUND


def test_inactive_coupon_rejected():
    verdict = evaluate_coupon(make_coupon(is_active=False), Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.INACTIVE


def test_future_coupon_not_yet_valid():
    coupon = make_coupon(valid_from=NOW + timedelta(days=1))

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.NOT_YET_VALID


def test_expired_coupon_rejected_even_with_uses_left():
    """
    Validates:
    - valid_until in the past rejects the coupon
    - remaining uses do not matter
    """
    coupon = make_coupon(valid_until=NOW - timedelta(seconds=1), max_uses=100, used_count=0)

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.EXPIRED


def test_valid_until_boundary_is_inclusive():
    coupon = make_coupon(valid_until=NOW)

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert isinstance(verdict, CouponAccepted)


def test_exhausted_coupon_rejected():
    coupon = make_coupon(max_uses=5, used_count=5)

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.USAGE_EXHAUSTED


def test_checks_short_circuit_in_order():
    """An inactive, expired, exhausted coupon reports the first failing rule."""
    coupon = make_coupon(
        is_active=False,
        valid_until=NOW - timedelta(days=1),
        max_uses=1,
        used_count=1,
    )

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.INACTIVE


@pytest.mark.parametrize(
    "discount_type,value",
    [
        (DiscountType.PERCENTAGE, Decimal("150")),
        (DiscountType.PERCENTAGE, Decimal("-5")),
        (DiscountType.FIXED, Decimal("-10")),
    ],
)
def test_misconfigured_discount_rejected(discount_type, value):
    coupon = make_coupon(discount_type=discount_type, discount_value=value)

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert verdict.reason == CouponRejection.INVALID_DISCOUNT_CONFIGURATION


def test_naive_timestamps_treated_as_utc():
    coupon = make_coupon(valid_from=(NOW - timedelta(hours=1)).replace(tzinfo=None))

    verdict = evaluate_coupon(coupon, Decimal("100"), NOW)

    assert isinstance(verdict, CouponAccepted)


@pytest.mark.parametrize(
    "gross,value,expected",
    [
        (Decimal("100"), Decimal("20"), Decimal("20.00")),
        (Decimal("49.99"), Decimal("15"), Decimal("7.50")),
        (Decimal("99.99"), Decimal("15"), Decimal("15.00")),
        (Decimal("10.05"), Decimal("50"), Decimal("5.03")),
        (Decimal("0"), Decimal("50"), Decimal("0.00")),
        (Decimal("80"), Decimal("100"), Decimal("80.00")),
    ],
)
def test_percentage_discount_rounds_half_up(gross, value, expected):
    assert compute_discount(DiscountType.PERCENTAGE, value, gross) == expected


def test_fixed_discount_clamped_to_gross():
    coupon = make_coupon(discount_type=DiscountType.FIXED, discount_value=Decimal("60"))

    verdict = evaluate_coupon(coupon, Decimal("50"), NOW)

    assert verdict.discount_amount == Decimal("50.00")
    assert net_amount(Decimal("50"), verdict.discount_amount) == Decimal("0.00")


def test_evaluation_does_not_touch_the_coupon():
    coupon = make_coupon(max_uses=2, used_count=1)

    evaluate_coupon(coupon, Decimal("100"), NOW)

    assert coupon.used_count == 1


def test_net_amount_never_negative():
    assert net_amount(Decimal("10"), Decimal("25")) == Decimal("0")
