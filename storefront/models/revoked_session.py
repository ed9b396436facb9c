from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from storefront.core.database import Base


class RevokedSessionModel(Base):
    """Auth sessions logged out before their token expired."""
    __tablename__ = "revoked_sessions"

    session_id = Column(String(64), primary_key=True)

    # Token expiry; rows past this can be purged
    expires_at = Column(DateTime(timezone=True), nullable=True)

    revoked_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
