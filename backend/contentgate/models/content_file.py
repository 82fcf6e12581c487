"""Content file model"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, BigInteger
from sqlalchemy.orm import relationship
from contentgate.models.base import Base


class ContentFile(Base):
    """A deliverable attached to a product, hosted on Google Drive or YouTube"""
    __tablename__ = "content_files"
    
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    content_type = Column(String(20), nullable=False)  # pdf, docx, video, file
    google_drive_link = Column(String(1024), nullable=True)  # Share link for documents
    youtube_link = Column(String(1024), nullable=True)  # Unlisted link for videos
    requires_license = Column(Boolean, default=True, nullable=False)
    file_size_bytes = Column(BigInteger, nullable=True)
    
    # Relationship
    product = relationship("Product", back_populates="files")
