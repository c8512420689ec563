from unittest.mock import MagicMock

import pytest
import redis
from starlette.requests import Request

from services.scan_service.exceptions import RateLimitExceeded
from services.scan_service.guard.rate_limiter import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    enforce_rate_limit,
    get_client_identifier,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _request(headers):
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/api/scan", "headers": raw})


def test_sixth_request_in_window_is_rejected():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)

    for _ in range(5):
        assert limiter.check("1.2.3.4").allowed

    clock.now += 20
    status = limiter.check("1.2.3.4")
    assert not status.allowed
    assert status.retry_after == 40


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)
    for _ in range(6):
        limiter.check("1.2.3.4")

    clock.now += 60.5
    assert limiter.check("1.2.3.4").allowed
    assert limiter.entry_for("1.2.3.4").count == 1


def test_retry_after_is_rounded_up_and_at_least_one():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.check("a")

    clock.now += 59.2
    assert limiter.check("a").retry_after == 1
    clock.now -= 30
    assert limiter.check("a").retry_after == 31


def test_clients_have_separate_buckets():
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    assert limiter.check("a").allowed
    assert not limiter.check("a").allowed
    assert limiter.check("b").allowed


def test_client_identifier_precedence():
    assert get_client_identifier(_request({"X-Forwarded-For": "9.9.9.9, 10.0.0.1", "X-Real-IP": "8.8.8.8"})) == "9.9.9.9"
    assert get_client_identifier(_request({"X-Real-IP": "8.8.8.8"})) == "8.8.8.8"
    assert get_client_identifier(_request({})) == "unknown"


def test_enforce_rate_limit_raises_with_retry_after():
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    enforce_rate_limit(limiter, "a")
    with pytest.raises(RateLimitExceeded) as exc:
        enforce_rate_limit(limiter, "a")
    assert exc.value.retry_after == 60
    assert exc.value.status_code == 429


def test_redis_limiter_rejects_over_limit():
    client = MagicMock()
    pipe = client.pipeline.return_value
    pipe.execute.return_value = [6, 42]

    status = RedisRateLimiter(client, max_requests=5, window_seconds=60).check("a")

    assert not status.allowed
    assert status.retry_after == 42
    pipe.incr.assert_called_once_with("rate_limit:scan:a")


def test_redis_limiter_sets_expiry_on_first_hit():
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [1, -1]

    status = RedisRateLimiter(client, max_requests=5, window_seconds=60).check("a")

    assert status.allowed
    client.expire.assert_called_once_with("rate_limit:scan:a", 60)


def test_redis_limiter_fails_open():
    client = MagicMock()
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")

    assert RedisRateLimiter(client).check("a").allowed
