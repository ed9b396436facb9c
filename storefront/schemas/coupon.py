from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


class DiscountType(str, Enum):
    """Coupon discount type enumeration"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


COUPON_CODE_PATTERN = r"^[A-Za-z0-9_-]+$"


def normalize_coupon_code(code: str) -> str:
    """Coupon codes are matched case-insensitively and stored upper-case."""
    return code.strip().upper()


class CouponBase(BaseModel):
    """Base schema for a coupon, with admin input rules"""
    code: str = Field(..., min_length=3, max_length=50, pattern=COUPON_CODE_PATTERN)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    valid_from: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    valid_until: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code", mode="before")
    @classmethod
    def upper_code(cls, value):
        return normalize_coupon_code(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def check_discount_and_window(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.valid_until is not None and self.valid_until < self.valid_from:
            raise ValueError("valid_until must not be earlier than valid_from")
        return self


class CouponCreate(CouponBase):
    """Schema for creating a new coupon"""
    pass


class CouponUpdate(BaseModel):
    """Schema for updating a coupon (all fields optional)"""
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


class Coupon(BaseModel):
    """
    A stored coupon as read back from any backend.

    Not re-validated against the admin input rules; misconfigured rows load
    and are rejected by the coupon evaluator.
    """
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_uses: Optional[int] = None
    used_count: int = 0
    valid_from: datetime
    valid_until: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
