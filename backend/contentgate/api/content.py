"""Content access API routes

POST /api/content/access mints a signed link for an authenticated, licensed
user. The two GET endpoints verify such a link and redirect to the third-party
host. They do not look at sessions or licenses: a valid, unexpired signature
is the capability.
"""
import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from contentgate.core.exceptions import (
    BadRequest, ConfigurationError, ContentAccessError, Forbidden, Gone, InternalError
)
from contentgate.core.metrics import redirects_counter
from contentgate.core.security import get_session_user_id
from contentgate.db.session import get_db
from contentgate.schemas.content import ContentAccessRequest, ContentAccessResponse, ErrorResponse
from contentgate.services.content_access_service import generate_content_access
from contentgate.services.rate_limiter import RateLimiter, get_rate_limiter
from contentgate.utils.content_tokens import (
    ContentSigner, DocumentToken, SignedToken, VerificationFailure, VideoToken,
    get_content_signer, sanitize_file_name
)
from contentgate.utils.links import drive_download_url, is_resource_id, youtube_watch_url

content_logger = logging.getLogger("content")
security_logger = logging.getLogger("security")

router = APIRouter(prefix="/api/content", tags=["content"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

REDIRECT_RESPONSES = {
    302: {"description": "Redirect to the third-party resource"},
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def read_json_body(request: Request) -> Any:
    """Parse the body without validating it, so authentication is checked first"""
    try:
        return await request.json()
    except ValueError:
        return None


def _cors_preflight(methods: str) -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )


@router.post(
    "/access",
    response_model=ContentAccessResponse,
    responses=ERROR_RESPONSES,
    openapi_extra={
        "requestBody": {"content": {"application/json": {"schema": ContentAccessRequest.model_json_schema()}}}
    },
)
def request_content_access(
    payload: Any = Depends(read_json_body),
    user_id: Optional[int] = Depends(get_session_user_id),
    db: Session = Depends(get_db),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Mint a time-limited access URL for a content file"""
    product_file_id = payload.get("productFileId") if isinstance(payload, dict) else None

    try:
        return generate_content_access(
            user_id,
            product_file_id,
            db,
            rate_limiter=rate_limiter,
        )
    except ConfigurationError as e:
        # Client sees the generic message; the handler logs the detail
        raise InternalError(detail=e.detail) from e
    except ContentAccessError:
        raise
    except Exception as e:
        content_logger.error(f"Error in content access API: {e}", exc_info=True)
        raise InternalError(detail=str(e)) from e


@router.options("/access")
def content_access_options():
    return _cors_preflight("POST, OPTIONS")


def _parse_expires(resource_id, name, expires, signature) -> int:
    if not resource_id or not name or not expires or not signature:
        raise BadRequest("Missing required parameters")
    try:
        return int(expires)
    except ValueError:
        raise BadRequest("Invalid expiration parameter")


def _redirect_signer() -> ContentSigner:
    try:
        return get_content_signer()
    except ConfigurationError as e:
        content_logger.error(f"Content signing misconfigured: {e.detail}")
        raise


def _verify_link(family: str, signature: str, token: SignedToken, resource_label: str) -> None:
    """Check expiry and signature of a redirect link, raising Gone/Forbidden on failure"""
    # Expiry is checked before the signer is even loaded
    if int(time.time()) > token.expires_at:
        redirects_counter.labels(family=family, outcome="expired").inc()
        raise Gone()

    # Keeps the id:name boundary unambiguous for names containing ":"
    if not is_resource_id(token[0]):
        redirects_counter.labels(family=family, outcome="invalid_signature").inc()
        security_logger.warning(f"Malformed {family} id in link for {resource_label}")
        raise Forbidden(VerificationFailure.INVALID_SIGNATURE.value)

    result = _redirect_signer().verify(signature, token)
    if result.valid:
        redirects_counter.labels(family=family, outcome="redirected").inc()
        return

    if result.reason is VerificationFailure.EXPIRED:
        redirects_counter.labels(family=family, outcome="expired").inc()
        raise Gone()

    redirects_counter.labels(family=family, outcome="invalid_signature").inc()
    security_logger.warning(f"Invalid {family} link signature for {resource_label}")
    raise Forbidden(VerificationFailure.INVALID_SIGNATURE.value)


@router.get("/download/drive", response_class=RedirectResponse, responses=REDIRECT_RESPONSES)
def download_drive_document(
    file_id: Optional[str] = Query(None, alias="fileId"),
    file_name: Optional[str] = Query(None, alias="fileName"),
    expires: Optional[str] = None,
    signature: Optional[str] = None,
):
    """Verify a signed document link and redirect to the Google Drive download"""
    expires_at = _parse_expires(file_id, file_name, expires, signature)
    token = DocumentToken(file_id=file_id, file_name=file_name, expires_at=expires_at)

    _verify_link("document", signature, token, f"file {file_id} ({sanitize_file_name(file_name)})")

    content_logger.info(f"Redirecting to Google Drive file {file_id}")
    return RedirectResponse(drive_download_url(file_id), status_code=302)


@router.options("/download/drive")
def download_drive_options():
    return _cors_preflight("GET, OPTIONS")


@router.get("/video/youtube", response_class=RedirectResponse, responses=REDIRECT_RESPONSES)
def watch_youtube_video(
    video_id: Optional[str] = Query(None, alias="videoId"),
    title: Optional[str] = None,
    expires: Optional[str] = None,
    signature: Optional[str] = None,
):
    """Verify a signed video link and redirect to the YouTube watch page"""
    expires_at = _parse_expires(video_id, title, expires, signature)
    token = VideoToken(video_id=video_id, title=title, expires_at=expires_at)

    _verify_link("video", signature, token, f"video {video_id} ({sanitize_file_name(title)})")

    content_logger.info(f"Redirecting to YouTube video {video_id}")
    return RedirectResponse(youtube_watch_url(video_id), status_code=302)


@router.options("/video/youtube")
def watch_youtube_options():
    return _cors_preflight("GET, OPTIONS")
