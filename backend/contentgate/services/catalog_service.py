"""Catalog lookups for content files (read-only)"""
from typing import Optional

from sqlalchemy.orm import Session

from contentgate.models.content_file import ContentFile


def get_content_file(content_file_id, db: Session) -> Optional[ContentFile]:
    """Get a content file by id, None if it does not exist or the id is malformed"""
    try:
        file_id = int(content_file_id)
    except (TypeError, ValueError):
        return None
    return db.query(ContentFile).filter(ContentFile.id == file_id).first()
