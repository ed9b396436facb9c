from pydantic import BaseModel, Field, field_validator
from typing import Optional
from decimal import Decimal

from storefront.schemas.coupon import normalize_coupon_code
from storefront.schemas.order import Order


class CheckoutRequest(BaseModel):
    """Body of a start-checkout call from the storefront"""
    plan_id: str = Field(..., min_length=1)
    coupon_code: Optional[str] = Field(None, max_length=50)

    @field_validator("plan_id")
    @classmethod
    def strip_plan_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Plan ID is required")
        return value

    @field_validator("coupon_code")
    @classmethod
    def clean_coupon_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = normalize_coupon_code(value)
        return value or None


class CheckoutResponse(BaseModel):
    """What the storefront needs to hand the buyer over to the payment page"""
    order_id: str
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    currency: str
    redirect_handle: str
    coupon_applied: bool
    coupon_rejection: Optional[str] = None


class PricePreview(BaseModel):
    """Side-effect free price computation for the cart"""
    plan_id: str
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    currency: str
    coupon_code: Optional[str] = None
    coupon_applied: bool
    coupon_rejection: Optional[str] = None


class CheckoutResult(BaseModel):
    """Outcome of the order builder: the pending order plus coupon feedback"""
    order: Order
    redirect_handle: str
    coupon_applied: bool
    coupon_rejection: Optional[str] = None

    def to_response(self) -> CheckoutResponse:
        return CheckoutResponse(
            order_id=self.order.id,
            gross_amount=self.order.gross_amount,
            discount_amount=self.order.discount_amount,
            net_amount=self.order.net_amount,
            currency=self.order.currency,
            redirect_handle=self.redirect_handle,
            coupon_applied=self.coupon_applied,
            coupon_rejection=self.coupon_rejection,
        )
