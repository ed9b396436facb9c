from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from storefront.core.database import Base


class SubscriptionModel(Base):
    """
    User subscription model.

    One row per completed order (order_id is unique). Status only moves
    from 'active' to 'cancelled'.
    """
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True)

    # Supabase auth user id
    user_id = Column(String(64), nullable=False, index=True)

    plan_id = Column(
        String(36),
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # The order that paid for this subscription
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True
    )

    # 'active', 'cancelled'
    status = Column(String(20), nullable=False, default="active", index=True)

    # Entitlement period
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)

    # Provider's subscription id, for cancellation events
    external_subscription_ref = Column(String(255), nullable=True, index=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<SubscriptionModel(id={self.id}, user_id={self.user_id}, plan_id={self.plan_id}, status='{self.status}')>"
