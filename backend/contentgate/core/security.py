"""Security dependencies and API access logging"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

from contentgate.db import redis as redis_store

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")


def get_session_user_id(request: Request) -> Optional[int]:
    """Dependency: resolve the session cookie to a user id, None when unauthenticated

    Sessions are created by the storefront auth service; this service only reads them.
    """
    session_id = request.cookies.get("session_id")
    if not session_id:
        return None

    try:
        user_id = redis_store.get_session(session_id)
    except Exception as e:
        # Store outage reads as unauthenticated
        security_logger.error(f"Session lookup failed: {e}")
        return None

    if not user_id:
        security_logger.info(f"Unknown or expired session - Path: {request.url.path}")
    return user_id


def get_client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log detailed API access information

    Query strings are not logged: for content links they carry the signature.
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")
