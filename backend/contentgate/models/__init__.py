"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from contentgate.models.base import Base
from contentgate.models.user import User
from contentgate.models.product import Product
from contentgate.models.content_file import ContentFile
from contentgate.models.license import License

# Export all for convenience
__all__ = ["Base", "User", "Product", "ContentFile", "License"]
