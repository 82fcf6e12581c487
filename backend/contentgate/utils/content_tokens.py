"""Signed content access URLs

Provides time-limited, HMAC-SHA256 signed links for Drive documents and
YouTube videos. Signatures are hex digests over ``<id>:<name>:<expires>``;
links that were already issued must keep verifying until they expire, so the
message layout of the document and video tokens must never change.

Names may contain `:`, so the message alone does not fix the boundary
between id and name. Ids never contain `:` (see ``links.is_resource_id``),
which makes the first separator the boundary; redirect handlers reject ids
outside that alphabet before verifying.
"""
import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple, Union
from urllib.parse import quote, urlencode

from contentgate.core.config import (
    DRIVE_DOWNLOAD_PATH, MIN_SIGNING_SECRET_LENGTH, YOUTUBE_ACCESS_PATH, settings
)
from contentgate.core.exceptions import ConfigurationError

DOCUMENT_CONTENT_TYPES = ("pdf", "docx", "file")
VIDEO_CONTENT_TYPES = ("video",)

MAX_FILE_NAME_LENGTH = 100
UNSAFE_FILE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")
REPEATED_UNDERSCORES = re.compile(r"_{2,}")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "private, no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class DocumentToken(NamedTuple):
    """Fields signed for a Drive document link"""
    file_id: str
    file_name: str
    expires_at: int

    def signing_message(self) -> str:
        return f"{self.file_id}:{self.file_name}:{self.expires_at}"


class VideoToken(NamedTuple):
    """Fields signed for a YouTube video link"""
    video_id: str
    title: str
    expires_at: int

    def signing_message(self) -> str:
        return f"{self.video_id}:{self.title}:{self.expires_at}"


class AccessGrantToken(NamedTuple):
    """Fields signed for a subject-bound grant (content type and user included)"""
    file_id: str
    file_name: str
    content_type: str
    user_id: str
    expires_at: int

    def signing_message(self) -> str:
        return ":".join([
            self.file_id,
            self.file_name,
            self.content_type,
            self.user_id,
            str(self.expires_at),
        ])


SignedToken = Union[DocumentToken, VideoToken, AccessGrantToken]


class VerificationFailure(str, Enum):
    EXPIRED = "Access link has expired"
    INVALID_SIGNATURE = "Invalid access signature"


class VerificationResult(NamedTuple):
    valid: bool
    reason: Optional[VerificationFailure] = None


@dataclass(frozen=True)
class ContentSecurityConfig:
    """Signing and content policy configuration, validated on construction"""
    signing_secret: str
    max_file_size: int
    allowed_content_types: Tuple[str, ...]
    max_downloads_per_hour: int
    document_expiry_minutes: int = 60
    video_expiry_minutes: int = 120

    def __post_init__(self):
        if not self.signing_secret or len(self.signing_secret) < MIN_SIGNING_SECRET_LENGTH:
            raise ConfigurationError(
                detail=f"Content signing secret must be at least {MIN_SIGNING_SECRET_LENGTH} characters long"
            )
        if self.max_file_size <= 0:
            raise ConfigurationError(detail="Max file size must be positive")
        if len(self.allowed_content_types) == 0:
            raise ConfigurationError(detail="At least one content type must be allowed")
        if self.max_downloads_per_hour <= 0:
            raise ConfigurationError(detail="Max downloads per hour must be positive")
        if self.document_expiry_minutes <= 0 or self.video_expiry_minutes <= 0:
            raise ConfigurationError(detail="Link expiry windows must be positive")

    @classmethod
    def from_settings(cls, app_settings=None) -> "ContentSecurityConfig":
        app_settings = app_settings or settings
        return cls(
            signing_secret=app_settings.CONTENT_SIGNING_SECRET,
            max_file_size=app_settings.CONTENT_MAX_FILE_SIZE,
            allowed_content_types=tuple(app_settings.CONTENT_ALLOWED_TYPES),
            max_downloads_per_hour=app_settings.CONTENT_MAX_DOWNLOADS_PER_HOUR,
            document_expiry_minutes=app_settings.CONTENT_DOCUMENT_EXPIRY_MINUTES,
            video_expiry_minutes=app_settings.CONTENT_VIDEO_EXPIRY_MINUTES,
        )


class ContentSigner:
    """Signs and verifies content access tokens with the configured secret"""

    def __init__(self, config: ContentSecurityConfig):
        self.config = config
        self._key = config.signing_secret.encode("utf-8")

    def sign(self, token: SignedToken) -> str:
        """Return the lowercase hex HMAC-SHA256 digest (64 chars) for a token"""
        return hmac.new(
            self._key, token.signing_message().encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def verify(self, signature: str, token: SignedToken, now: Optional[int] = None) -> VerificationResult:
        """Verify a token signature

        Expiry is checked first, so an expired token is rejected without
        computing its digest.
        """
        now = int(time.time()) if now is None else now
        if now > token.expires_at:
            return VerificationResult(valid=False, reason=VerificationFailure.EXPIRED)

        expected = self.sign(token)
        # Use constant-time comparison to prevent timing attacks
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            return VerificationResult(valid=False, reason=VerificationFailure.INVALID_SIGNATURE)

        return VerificationResult(valid=True)

    def build_document_url(self, base_url: str, token: DocumentToken) -> str:
        """Signed redirect URL for a Drive document"""
        query = urlencode({
            "fileId": token.file_id,
            "fileName": token.file_name,
            "expires": token.expires_at,
            "signature": self.sign(token),
        }, quote_via=quote)
        return f"{base_url.rstrip('/')}{DRIVE_DOWNLOAD_PATH}?{query}"

    def build_video_url(self, base_url: str, token: VideoToken) -> str:
        """Signed redirect URL for a YouTube video"""
        query = urlencode({
            "videoId": token.video_id,
            "title": token.title,
            "expires": token.expires_at,
            "signature": self.sign(token),
        }, quote_via=quote)
        return f"{base_url.rstrip('/')}{YOUTUBE_ACCESS_PATH}?{query}"

    def build_grant_url(self, base_url: str, endpoint: str, token: AccessGrantToken) -> str:
        """Signed URL carrying a subject-bound grant"""
        query = urlencode({
            "fileId": token.file_id,
            "fileName": token.file_name,
            "userId": token.user_id,
            "expires": token.expires_at,
            "signature": self.sign(token),
        })
        return f"{base_url.rstrip('/')}{endpoint}?{query}"

    def is_content_type_allowed(self, content_type: str) -> bool:
        return content_type in self.config.allowed_content_types

    def is_file_size_allowed(self, file_size: int) -> bool:
        return file_size <= self.config.max_file_size

    def get_expiration_time(self, content_type: str, now: Optional[int] = None) -> int:
        """Expiry timestamp for a content type; unknown types get the documents window"""
        now = int(time.time()) if now is None else now
        if content_type in VIDEO_CONTENT_TYPES:
            return now + self.config.video_expiry_minutes * 60
        return now + self.config.document_expiry_minutes * 60


def sanitize_file_name(file_name: str, max_length: int = MAX_FILE_NAME_LENGTH) -> str:
    """Make a file name safe for URLs and download headers"""
    sanitized = UNSAFE_FILE_NAME_CHARS.sub("_", file_name)
    sanitized = REPEATED_UNDERSCORES.sub("_", sanitized)
    return sanitized[:max_length]


def get_security_headers() -> Dict[str, str]:
    """Headers applied to every content endpoint response"""
    return dict(SECURITY_HEADERS)


# Lazy initialization - config is validated on first use, not at import
_signer = None


def get_content_signer() -> ContentSigner:
    """Get or create the process-wide signer (FastAPI dependency)

    Raises:
        ConfigurationError: if the signing configuration is invalid
    """
    global _signer
    if _signer is None:
        _signer = ContentSigner(ContentSecurityConfig.from_settings())
    return _signer
