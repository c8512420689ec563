import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import redis
from fastapi import Request

from config.logging_config import get_logger, scan_logger
from services.scan_service.config import settings
from services.scan_service.exceptions import RateLimitExceeded
from services.scan_service.metrics import rate_limit_rejections_total

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    retry_after: int = 0


class InMemoryRateLimiter:
    """Fixed-window counter per client id.

    Entries are replaced lazily when their window has expired and are never
    swept, so the table grows with the number of distinct clients seen by the
    process.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(self, client_id: str) -> RateLimitStatus:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None or now > entry.window_reset_at:
                self._entries[client_id] = RateLimitEntry(count=1, window_reset_at=now + self.window_seconds)
                return RateLimitStatus(allowed=True)

            if entry.count >= self.max_requests:
                return RateLimitStatus(allowed=False, retry_after=max(1, math.ceil(entry.window_reset_at - now)))

            entry.count += 1
            return RateLimitStatus(allowed=True)

    def entry_for(self, client_id: str) -> Optional[RateLimitEntry]:
        return self._entries.get(client_id)


class RedisRateLimiter:
    """Same fixed window as the in-memory limiter, shared across processes through Redis."""

    def __init__(
        self,
        redis_client: redis.Redis,
        max_requests: int = 5,
        window_seconds: int = 60,
        key_prefix: str = "rate_limit:scan",
    ):
        self.redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def _key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    def check(self, client_id: str) -> RateLimitStatus:
        key = self._key(client_id)
        try:
            pipe = self.redis.pipeline()
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = pipe.execute()

            if ttl is None or ttl < 0:
                self.redis.expire(key, self.window_seconds)
                ttl = self.window_seconds

            if count > self.max_requests:
                return RateLimitStatus(allowed=False, retry_after=max(1, int(ttl)))
            return RateLimitStatus(allowed=True)

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiter: {e}")
            return RateLimitStatus(allowed=True)


def build_rate_limiter():
    if settings.rate_limit_backend == "redis":
        if not settings.redis_url:
            raise ValueError("SCAN_REDIS_URL is required when rate_limit_backend is 'redis'")
        return RedisRateLimiter(
            redis.Redis.from_url(settings.redis_url, decode_responses=True),
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_s,
        )
    return InMemoryRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_s,
    )


def get_client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CLIENT


def enforce_rate_limit(limiter, client_id: str) -> None:
    status = limiter.check(client_id)
    if not status.allowed:
        scan_logger.log_rate_limited(client_id, status.retry_after)
        rate_limit_rejections_total.inc()
        raise RateLimitExceeded(status.retry_after)
