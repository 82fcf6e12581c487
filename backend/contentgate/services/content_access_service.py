"""Content access service - mints signed, time-limited access URLs

Flow for every mint request:
    authenticated -> content resolved -> rate limited -> license checked
    -> content family selected -> signed URL minted

Hard failures raise a ContentAccessError subclass. Content records whose
external link is missing or unusable are a catalog authoring gap, not a
client error, and come back as ``{"success": False, "error": ...}``.
"""
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from contentgate.core.config import settings
from contentgate.core.exceptions import (
    BadRequest, Forbidden, InternalError, InvalidLinkFormat, NotFound, RateLimited, Unauthorized
)
from contentgate.core.metrics import content_access_counter
from contentgate.models.content_file import ContentFile
from contentgate.services.catalog_service import get_content_file
from contentgate.services.license_service import has_access
from contentgate.services.rate_limiter import RateLimiter
from contentgate.utils.content_tokens import (
    DOCUMENT_CONTENT_TYPES, VIDEO_CONTENT_TYPES, ContentSigner, DocumentToken, VideoToken,
    get_content_signer, sanitize_file_name
)
from contentgate.utils.links import parse_drive_link, parse_youtube_link, youtube_embed_url

content_logger = logging.getLogger("content")


class ContentFamily(str, Enum):
    """Closed set of delivery families; each has its own parser, expiry window and redirect"""
    DOCUMENT = "document"
    VIDEO = "video"

    @classmethod
    def for_content_type(cls, content_type: str) -> "ContentFamily":
        if content_type in DOCUMENT_CONTENT_TYPES:
            return cls.DOCUMENT
        if content_type in VIDEO_CONTENT_TYPES:
            return cls.VIDEO
        raise InternalError(detail=f"Unsupported content type: {content_type!r}")

    def expiry_minutes(self, signer: ContentSigner) -> int:
        if self is ContentFamily.VIDEO:
            return signer.config.video_expiry_minutes
        return signer.config.document_expiry_minutes


def _record(family: str, outcome: str) -> None:
    content_access_counter.labels(content_family=family, outcome=outcome).inc()


def format_expiry(expires_at: int) -> str:
    """ISO 8601 UTC timestamp with millisecond precision (e.g. 2025-01-01T12:00:00.000Z)"""
    expires = datetime.fromtimestamp(expires_at, tz=timezone.utc)
    return expires.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _mint_document_access(
    content_file: ContentFile, signer: ContentSigner, base_url: str, expires_at: int
) -> Dict[str, Any]:
    if not content_file.google_drive_link:
        return {"success": False, "error": "Document not configured"}

    try:
        drive_link = parse_drive_link(content_file.google_drive_link)
    except InvalidLinkFormat as e:
        content_logger.warning(f"Content file {content_file.id} has an unusable Drive link: {e}")
        return {"success": False, "error": "Invalid Google Drive link"}

    token = DocumentToken(
        file_id=drive_link.file_id,
        file_name=content_file.name,
        expires_at=expires_at,
    )
    return {
        "success": True,
        "contentType": ContentFamily.DOCUMENT.value,
        "accessUrl": signer.build_document_url(base_url, token),
        "fileName": content_file.name,
        "expiresAt": format_expiry(expires_at),
    }


def _mint_video_access(
    content_file: ContentFile, signer: ContentSigner, base_url: str, expires_at: int
) -> Dict[str, Any]:
    if not content_file.youtube_link:
        return {"success": False, "error": "Video not configured"}

    try:
        youtube_link = parse_youtube_link(content_file.youtube_link)
    except InvalidLinkFormat as e:
        content_logger.warning(f"Content file {content_file.id} has an unusable YouTube link: {e}")
        return {"success": False, "error": "Invalid YouTube link"}

    token = VideoToken(
        video_id=youtube_link.video_id,
        title=content_file.name,
        expires_at=expires_at,
    )
    return {
        "success": True,
        "contentType": ContentFamily.VIDEO.value,
        "accessUrl": signer.build_video_url(base_url, token),
        "embedUrl": youtube_embed_url(youtube_link.video_id),
        "videoId": youtube_link.video_id,
        "title": content_file.name,
        "expiresAt": format_expiry(expires_at),
    }


MINTERS: Dict[ContentFamily, Callable[..., Dict[str, Any]]] = {
    ContentFamily.DOCUMENT: _mint_document_access,
    ContentFamily.VIDEO: _mint_video_access,
}


def generate_content_access(
    user_id: Optional[int],
    product_file_id: Any,
    db: Session,
    signer: Optional[ContentSigner] = None,
    rate_limiter: Optional[RateLimiter] = None,
    base_url: Optional[str] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Mint a signed access URL for a content file

    Args:
        user_id: Authenticated user id, None when the caller has no session
        product_file_id: Requested content file id from the request body
        db: Database session for catalog and license lookups
        signer: Content signer, built from settings when omitted
        rate_limiter: Applied to every mint request when provided
        base_url: Public base URL for redirect links (defaults to FRONTEND_URL)
        now: Epoch seconds, defaults to the current time

    Returns:
        Access payload, or a soft failure for unconfigured content

    Raises:
        Unauthorized, BadRequest, NotFound, RateLimited, Forbidden, InternalError,
        ConfigurationError
    """
    if user_id is None:
        _record("unknown", "unauthenticated")
        raise Unauthorized()

    if product_file_id is None or str(product_file_id).strip() == "":
        _record("unknown", "bad_request")
        raise BadRequest("Product file ID is required")

    if isinstance(product_file_id, bool) or not isinstance(product_file_id, (int, str)):
        _record("unknown", "bad_request")
        raise BadRequest("Invalid product file ID")

    content_file = get_content_file(product_file_id, db)
    if not content_file:
        _record("unknown", "not_found")
        raise NotFound()

    if rate_limiter is not None:
        decision = rate_limiter.check_and_consume(str(user_id), now=now)
        if not decision.allowed:
            _record("unknown", "rate_limited")
            raise RateLimited()

    license_now = datetime.fromtimestamp(now, tz=timezone.utc) if now is not None else None
    if not has_access(user_id, content_file, db, now=license_now):
        _record("unknown", "license_denied")
        content_logger.info(f"License denied - User: {user_id}, Content file: {content_file.id}")
        raise Forbidden()

    # Content type is resolved once; everything below dispatches on the family
    family = ContentFamily.for_content_type(content_file.content_type)
    signer = signer or get_content_signer()

    if not signer.is_content_type_allowed(content_file.content_type):
        raise InternalError(detail=f"Content type {content_file.content_type!r} is not allowed")
    if content_file.file_size_bytes is not None and not signer.is_file_size_allowed(content_file.file_size_bytes):
        raise InternalError(
            detail=f"Content file {content_file.id} exceeds the maximum file size "
                   f"({content_file.file_size_bytes} > {signer.config.max_file_size})"
        )

    now = int(time.time()) if now is None else now
    expires_at = now + family.expiry_minutes(signer) * 60
    result = MINTERS[family](content_file, signer, base_url or settings.FRONTEND_URL, expires_at)

    if result["success"]:
        _record(family.value, "granted")
        content_logger.info(
            f"Access granted - User: {user_id}, Content file: {content_file.id} "
            f"({sanitize_file_name(content_file.name)}), Family: {family.value}, Expires: {expires_at}"
        )
    else:
        _record(family.value, "not_configured")
        content_logger.warning(
            f"Content file {content_file.id} not deliverable: {result['error']}"
        )
    return result
