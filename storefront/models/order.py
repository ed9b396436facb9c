from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from storefront.core.database import Base


class OrderModel(Base):
    """
    One checkout attempt.

    Created once in 'pending'; afterwards only payment events move it to
    'completed' or 'failed'.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)

    # Supabase auth user id
    user_id = Column(String(64), nullable=False, index=True)

    plan_id = Column(
        String(36),
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Amounts snapshot at checkout time
    gross_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    net_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    # Only set when the coupon was actually redeemed
    coupon_code = Column(String(50), nullable=True)

    # 'pending', 'completed', 'failed'
    payment_status = Column(String(20), nullable=False, default="pending", index=True)

    # Provider cross-references
    payment_session_ref = Column(String(255), nullable=False, unique=True)
    payment_intent_ref = Column(String(255), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, user_id={self.user_id}, status='{self.payment_status}')>"
