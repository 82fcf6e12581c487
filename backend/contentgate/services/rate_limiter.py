"""Per-subject fixed-window rate limiting for content access

The limiter talks to a ``RateLimitStore`` so the backing storage can be
swapped without touching callers. The default in-memory store is per
process: running several workers multiplies the effective ceiling. Use the
Redis store (RATE_LIMIT_BACKEND=redis) when the ceiling must hold across
processes.

The read-check-then-write sequence in ``check_and_consume`` is not atomic,
so a burst of concurrent requests from one subject can be admitted slightly
past the limit.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, NamedTuple, Optional

from contentgate.core.config import settings
from contentgate.core.metrics import rate_limit_denials_counter
from contentgate.db import redis as redis_store

rate_limit_logger = logging.getLogger("rate_limit")


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: Optional[int] = None


class RateLimitStore:
    """Storage interface used by RateLimiter"""

    def get(self, subject_id: str) -> Optional[RateLimitRecord]:
        raise NotImplementedError

    def reset(self, subject_id: str, reset_at: float) -> RateLimitRecord:
        """Start a new window for the subject with a count of 1"""
        raise NotImplementedError

    def increment(self, subject_id: str) -> Optional[int]:
        """Increment the subject's count and return the new value

        Returns None when the record has been swept since it was read.
        """
        raise NotImplementedError

    def sweep(self, now: float) -> int:
        """Delete records whose window has ended, return the number removed"""
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store"""

    def __init__(self):
        self._records: Dict[str, RateLimitRecord] = {}
        # Guards the dict during sweeps; check_and_consume stays non-atomic
        self._lock = threading.Lock()

    def get(self, subject_id: str) -> Optional[RateLimitRecord]:
        return self._records.get(subject_id)

    def reset(self, subject_id: str, reset_at: float) -> RateLimitRecord:
        record = RateLimitRecord(count=1, reset_at=reset_at)
        with self._lock:
            self._records[subject_id] = record
        return record

    def increment(self, subject_id: str) -> Optional[int]:
        with self._lock:
            record = self._records.get(subject_id)
            if record is None:
                return None
            record.count += 1
            return record.count

    def sweep(self, now: float) -> int:
        with self._lock:
            expired = [subject for subject, record in self._records.items() if now > record.reset_at]
            for subject in expired:
                del self._records[subject]
        return len(expired)

    def __len__(self):
        return len(self._records)


class RedisRateLimitStore(RateLimitStore):
    """Store shared by every process pointing at the same Redis"""

    def get(self, subject_id: str) -> Optional[RateLimitRecord]:
        record = redis_store.get_rate_limit_record(subject_id)
        if record is None:
            return None
        count, reset_at = record
        return RateLimitRecord(count=count, reset_at=reset_at)

    def reset(self, subject_id: str, reset_at: float) -> RateLimitRecord:
        redis_store.set_rate_limit_record(subject_id, 1, reset_at)
        return RateLimitRecord(count=1, reset_at=reset_at)

    def increment(self, subject_id: str) -> Optional[int]:
        return redis_store.increment_rate_limit_record(subject_id)

    def sweep(self, now: float) -> int:
        return redis_store.delete_rate_limit_records(now)


class RateLimiter:
    """Admits at most ``limit`` requests per subject per ``window_seconds``"""

    def __init__(self, store: RateLimitStore, limit: int, window_seconds: int):
        if limit <= 0:
            raise ValueError("Rate limit must be positive")
        if window_seconds <= 0:
            raise ValueError("Rate limit window must be positive")
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds

    def check_and_consume(self, subject_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """Count one request for the subject and decide whether to admit it"""
        now = time.time() if now is None else now
        record = self.store.get(subject_id)

        # Window check always precedes reading or bumping the count
        if record is None or now > record.reset_at:
            self.store.reset(subject_id, now + self.window_seconds)
            return RateLimitDecision(allowed=True, remaining=self.limit - 1)

        if record.count >= self.limit:
            rate_limit_denials_counter.inc()
            rate_limit_logger.warning(
                f"Rate limit exceeded for subject {subject_id} "
                f"({record.count}/{self.limit}, resets at {int(record.reset_at)})"
            )
            return RateLimitDecision(allowed=False)

        count = self.store.increment(subject_id)
        if count is None:
            # Swept between get and increment; start a fresh window
            self.store.reset(subject_id, now + self.window_seconds)
            return RateLimitDecision(allowed=True, remaining=self.limit - 1)
        return RateLimitDecision(allowed=True, remaining=self.limit - count)

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove records whose window has passed"""
        now = time.time() if now is None else now
        return self.store.sweep(now)


def build_rate_limit_store(backend: Optional[str] = None) -> RateLimitStore:
    backend = backend or settings.RATE_LIMIT_BACKEND
    if backend == "redis":
        return RedisRateLimitStore()
    return InMemoryRateLimitStore()


# Owned by the application; tests override the FastAPI dependency
_rate_limiter = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the application's rate limiter (FastAPI dependency)"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(
            store=build_rate_limit_store(),
            limit=settings.CONTENT_MAX_DOWNLOADS_PER_HOUR,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        rate_limit_logger.info(
            f"Content rate limiter ready: {settings.CONTENT_MAX_DOWNLOADS_PER_HOUR} requests per "
            f"{settings.RATE_LIMIT_WINDOW_SECONDS}s ({settings.RATE_LIMIT_BACKEND} store)"
        )
    return _rate_limiter
