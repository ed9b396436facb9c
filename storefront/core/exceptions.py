"""
Exceptions raised by the persistence layer and the payment event parser.

HTTP-facing precondition errors are raised as HTTPException by the services
themselves; these cover the conditions callers need to branch on.
"""


class StoreError(Exception):
    """Base class for persistence errors."""


class StorageUnavailableError(StoreError):
    """The backend could not be reached, timed out or answered garbage."""


class DuplicateRecordError(StoreError):
    """A unique key (coupon code, subscription order id) already exists."""


class CouponExhaustedError(StoreError):
    """The conditional usage increment found no remaining uses."""

    def __init__(self, coupon_id: str):
        super().__init__(f"Coupon {coupon_id} has no remaining uses")
        self.coupon_id = coupon_id


class InvalidEventError(ValueError):
    """A webhook payload without a type or without an object id."""
