from pydantic import BaseModel
from typing import Optional
from enum import Enum


class PaymentEventType(str, Enum):
    """Named events the reconciler understands"""
    CHECKOUT_COMPLETED = "checkout_completed"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    UNKNOWN = "unknown"


class PaymentEvent(BaseModel):
    """A provider event reduced to the cross-reference ids the core needs"""
    event_type: PaymentEventType
    provider_type: str
    event_id: Optional[str] = None
    session_ref: Optional[str] = None
    payment_ref: Optional[str] = None
    subscription_ref: Optional[str] = None


class ReconciliationOutcome(str, Enum):
    """What reconciling one event did"""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNMATCHED = "unmatched"
    IGNORED = "ignored"


class ReconciliationResult(BaseModel):
    """Webhook response body"""
    outcome: ReconciliationOutcome
    event_type: PaymentEventType
    order_id: Optional[str] = None
    subscription_id: Optional[str] = None
    detail: Optional[str] = None
