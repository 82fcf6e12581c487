"""License service - entitlement checks for licensed content"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from contentgate.models.content_file import ContentFile
from contentgate.models.license import LICENSE_ACTIVE, License

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite and some drivers hand back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_user_licenses(user_id: int, product_id: int, db: Session) -> List[License]:
    """Fetch the user's licenses for a product"""
    return db.query(License).filter(
        License.user_id == user_id,
        License.product_id == product_id
    ).all()


def license_grants_access(license: License, product_id: int, now: Optional[datetime] = None) -> bool:
    """Check a single license against a product

    A license grants access only when it is active, belongs to the requested
    product, and has not expired. Expiry wins over status; a license without
    an expiry date is lifetime access.
    """
    now = now or datetime.now(timezone.utc)

    if license.status != LICENSE_ACTIVE:
        return False
    if license.product_id != product_id:
        return False
    if license.expires_at is not None and _as_utc(license.expires_at) <= now:
        return False
    return True


def any_license_grants_access(
    licenses: Iterable[License],
    product_id: int,
    now: Optional[datetime] = None
) -> bool:
    """True on the first license that grants access to the product"""
    now = now or datetime.now(timezone.utc)
    return any(license_grants_access(lic, product_id, now) for lic in licenses)


def has_access(
    user_id: int,
    content_file: ContentFile,
    db: Session,
    now: Optional[datetime] = None
) -> bool:
    """Decide whether a user may access a content file

    License-exempt content is open to every authenticated user. Otherwise the
    user needs a license that grants access to the file's product.
    """
    if not content_file.requires_license:
        return True

    licenses = get_user_licenses(user_id, content_file.product_id, db)
    granted = any_license_grants_access(licenses, content_file.product_id, now)

    if not granted:
        logger.info(
            f"No valid license - User: {user_id}, Product: {content_file.product_id}, "
            f"Licenses checked: {len(licenses)}"
        )
    return granted
