"""Redis client for session lookup and the shared rate-limit store"""
import logging
from typing import Optional, Tuple

import redis

from contentgate.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None

RATE_LIMIT_PREFIX = "ratelimit:content:"


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def get_session(session_id: str) -> Optional[int]:
    """Get user_id from session (sessions are written by the auth service)"""
    key = f"session:{session_id}"
    user_id = get_redis_client().get(key)
    return int(user_id) if user_id else None


def get_rate_limit_record(subject_id: str) -> Optional[Tuple[int, float]]:
    """Return (count, reset_at) for a subject, or None if there is no record"""
    record = get_redis_client().hgetall(f"{RATE_LIMIT_PREFIX}{subject_id}")
    if not record or "reset_at" not in record:
        return None
    return int(record.get("count", 0)), float(record["reset_at"])


def set_rate_limit_record(subject_id: str, count: int, reset_at: float) -> None:
    """Replace a subject's record; Redis expires the key at reset_at as a backstop"""
    key = f"{RATE_LIMIT_PREFIX}{subject_id}"
    client = get_redis_client()
    pipe = client.pipeline()
    pipe.hset(key, mapping={"count": count, "reset_at": reset_at})
    pipe.expireat(key, int(reset_at) + 1)
    pipe.execute()


def increment_rate_limit_record(subject_id: str) -> Optional[int]:
    """Increment a subject's count and return the new value, None if the record is gone"""
    key = f"{RATE_LIMIT_PREFIX}{subject_id}"
    client = get_redis_client()
    if not client.exists(key):
        return None
    return int(client.hincrby(key, "count", 1))


def delete_rate_limit_records(now: float) -> int:
    """Delete records whose reset_at has passed, return how many were removed"""
    client = get_redis_client()
    removed = 0
    for key in client.scan_iter(match=f"{RATE_LIMIT_PREFIX}*"):
        reset_at = client.hget(key, "reset_at")
        if reset_at is None or now > float(reset_at):
            removed += client.delete(key)
    return removed
