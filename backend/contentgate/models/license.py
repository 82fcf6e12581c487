"""License model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from contentgate.models.base import Base

LICENSE_ACTIVE = "active"
LICENSE_STATUSES = ("active", "expired", "suspended", "cancelled")


class License(Base):
    """Entitlement granting a user access to one product's content"""
    __tablename__ = "licenses"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), default=LICENSE_ACTIVE, nullable=False)  # active, expired, suspended, cancelled
    expires_at = Column(DateTime(timezone=True), nullable=True)  # None means lifetime access
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    
    # Relationships
    user = relationship("User", back_populates="licenses")
    product = relationship("Product", back_populates="licenses")
    
    __table_args__ = (
        Index('ix_licenses_user_product', 'user_id', 'product_id'),
    )
