"""Product model"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from contentgate.models.base import Base


class Product(Base):
    """Catalog product that owns downloadable/viewable content"""
    __tablename__ = "products"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    
    # Relationships
    files = relationship("ContentFile", back_populates="product", cascade="all, delete-orphan")
    licenses = relationship("License", back_populates="product")
