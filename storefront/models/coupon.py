from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Index
from sqlalchemy.sql import func
from storefront.core.database import Base


class CouponModel(Base):
    """
    Discount code with a validity window and an optional usage cap.

    used_count only ever grows, through the conditional increment done when
    an order is created.
    """
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True)

    # Stored upper-case
    code = Column(String(50), nullable=False)

    # 'percentage' or 'fixed'
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)

    # NULL means unlimited
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)

    valid_from = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    valid_until = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self):
        return f"<CouponModel(id={self.id}, code='{self.code}', used={self.used_count}/{self.max_uses})>"


# Codes are unique regardless of case
Index("ix_coupons_code_upper", func.upper(CouponModel.code), unique=True)
