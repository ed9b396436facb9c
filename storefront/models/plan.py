from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, JSON
from sqlalchemy.sql import func
from storefront.core.database import Base


class PlanModel(Base):
    """
    Subscription plan catalog row.

    Rows referenced by an order are never repriced in place; a price or
    duration change creates a new row and deactivates this one.
    """
    __tablename__ = "subscription_plans"

    # Primary key (opaque string id)
    id = Column(String(36), primary_key=True)

    # Human-readable name and description for the storefront
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Price in the store currency, two decimals
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Entitlement length granted by one purchase
    duration_months = Column(Integer, nullable=False, default=1)

    # Ordered list of feature strings
    features = Column(JSON, nullable=False, default=list)

    # Plan status
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Sort order for UI display
    display_order = Column(Integer, nullable=False, default=0)

    # Timestamps
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
        return f"<PlanModel(id={self.id}, name='{self.name}')>"
