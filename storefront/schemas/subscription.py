from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

from storefront.schemas.plan import PlanPublic


class SubscriptionStatus(str, Enum):
    """Subscription status enumeration"""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Subscription(BaseModel):
    """Entitlement period granted by a completed order"""
    id: str
    user_id: str
    plan_id: str
    order_id: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    start_date: datetime
    end_date: datetime
    external_subscription_ref: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    """Schema for subscription responses"""
    id: str
    plan_id: str
    order_id: str
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class SubscriptionWithPlan(SubscriptionResponse):
    """Schema including plan details"""
    plan: Optional[PlanPublic] = None
