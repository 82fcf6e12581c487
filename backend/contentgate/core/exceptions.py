"""Error taxonomy for content access

Every error carries the HTTP status it maps to and the message that is safe
to show to a client. Anything with internal detail goes to the log, never
into ``message``.
"""
from typing import Optional


class ContentAccessError(Exception):
    """Base error for the content access layer"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        # Server-side only
        self.detail = detail
        super().__init__(detail or self.message)


class BadRequest(ContentAccessError):
    status_code = 400
    default_message = "Bad request"


class Unauthorized(ContentAccessError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ContentAccessError):
    status_code = 403
    default_message = "Access denied. Please purchase this content."


class NotFound(ContentAccessError):
    status_code = 404
    default_message = "Content not found"


class Gone(ContentAccessError):
    status_code = 410
    default_message = "Access link has expired"


class RateLimited(ContentAccessError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


class ConfigurationError(ContentAccessError):
    """Misconfiguration (missing signing secret etc.), logged with detail"""
    status_code = 500
    default_message = "Content signing not configured"


class InternalError(ContentAccessError):
    """Unexpected state such as an unsupported content type in the catalog"""
    status_code = 500
    default_message = "Failed to generate content access"


class InvalidLinkFormat(ValueError):
    """Raised when a share link does not contain a usable identifier"""
