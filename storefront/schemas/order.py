from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class PaymentStatus(str, Enum):
    """Order payment status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(BaseModel):
    """One checkout attempt and its monetary outcome"""
    id: str
    user_id: str
    plan_id: str
    gross_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    net_amount: Decimal
    currency: str
    coupon_code: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_session_ref: str
    payment_intent_ref: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Schema for order listings"""
    id: str
    user_id: str
    plan_id: str
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    currency: str
    coupon_code: Optional[str]
    payment_status: PaymentStatus
    created_at: datetime

    class Config:
        from_attributes = True
