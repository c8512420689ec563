import json

import pytest

from services.scan_service.exceptions import InvalidScanRequest
from services.scan_service.guard.validation import parse_scan_request


def test_returns_url():
    assert parse_scan_request(b'{"url": "example.com"}') == "example.com"


@pytest.mark.parametrize("body", [
    b"",
    b"not json",
    b"[]",
    b"{}",
    b'{"url": null}',
    b'{"url": 42}',
    b'{"url": ["https://example.com"]}',
    b'{"url": "   "}',
])
def test_missing_or_malformed_url(body):
    with pytest.raises(InvalidScanRequest) as exc:
        parse_scan_request(body)
    assert exc.value.message == "URL is required"
    assert exc.value.status_code == 400


def test_url_too_long():
    body = json.dumps({"url": "https://example.com/" + "a" * 2029}).encode()
    with pytest.raises(InvalidScanRequest) as exc:
        parse_scan_request(body)
    assert exc.value.message == "URL too long (max 2048 characters)"


def test_url_at_limit_is_accepted():
    url = "https://example.com/" + "a" * 2028
    assert len(url) == 2048
    assert parse_scan_request(json.dumps({"url": url}).encode()) == url
