"""Middleware and exception handlers for the FastAPI application"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contentgate.core.config import settings
from contentgate.core.exceptions import ConfigurationError, ContentAccessError, InternalError
from contentgate.core.security import log_api_access
from contentgate.utils.content_tokens import get_security_headers

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

CONTENT_PATH_PREFIX = "/api/content/"


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend([
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ])
    return allowed_origins


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )


async def security_middleware(request: Request, call_next):
    """Apply content security headers and log API access"""
    session_id = request.cookies.get("session_id")
    status_code = 500
    error = None

    try:
        response = await call_next(request)
        status_code = response.status_code

        if request.url.path.startswith(CONTENT_PATH_PREFIX):
            for header, value in get_security_headers().items():
                response.headers[header] = value

        return response
    except Exception as e:
        error = str(e)
        security_logger.error(f"Security middleware error: {error}", exc_info=True)
        raise
    finally:
        log_api_access(request, session_id, status_code, error)


async def content_access_exception_handler(request: Request, exc: ContentAccessError):
    """Translate content access errors into {"error": message} responses"""
    if isinstance(exc, (ConfigurationError, InternalError)):
        # Full detail stays server-side
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail or exc.message}")
    elif exc.detail:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are plain 400s"""
    logger.info(f"Invalid request on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request"}
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


def register_exception_handlers(app):
    app.add_exception_handler(ContentAccessError, content_access_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
