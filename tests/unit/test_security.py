import httpx
import pytest
import respx

from services.scan_service.analyzers.security import check_security, fetch_headers, score_security

ALL_HEADERS = {
    "strict-transport-security": "max-age=31536000",
    "content-security-policy": "default-src 'self'",
    "x-frame-options": "DENY",
    "x-content-type-options": "nosniff",
    "referrer-policy": "no-referrer",
    "permissions-policy": "camera=()",
}


def test_fully_hardened_https_site():
    result = score_security("https://example.com/", ALL_HEADERS, {})
    assert result.score == 100
    assert result.is_https
    assert result.issues == []
    assert result.headers.csp.value == "default-src 'self'"


def test_only_permissions_policy_on_https_scores_fifty():
    result = score_security("https://example.com/", {"permissions-policy": "camera=()"}, {})
    assert result.score == 50
    assert result.headers.permissions_policy.present
    assert len(result.issues) == 5
    assert [r.check for r in result.recommendations] == [
        "HSTS", "CSP", "X-Frame-Options", "X-Content-Type-Options", "Referrer-Policy",
    ]


def test_missing_permissions_policy_is_not_penalized():
    headers = {k: v for k, v in ALL_HEADERS.items() if k != "permissions-policy"}
    result = score_security("https://example.com/", headers, {})
    assert result.score == 100
    assert not result.headers.permissions_policy.present


def test_http_site_ignores_mixed_content():
    result = score_security("http://example.com/", ALL_HEADERS, {"mixedItems": ["http://cdn.example.com/a.js"]})
    assert result.score == 70
    assert not result.is_https
    assert result.recommendations[0].priority == "Critical"
    assert result.mixed_content.count == 1
    assert not any("mixed content" in i for i in result.issues)


def test_mixed_content_and_cookie_penalties_are_capped():
    page_data = {
        "mixedItems": [f"http://cdn.example.com/{i}.js" for i in range(6)],
        "cookies": ["a", "b", "c", "d"],
        "inlineScripts": 3,
    }
    result = score_security("https://example.com/", ALL_HEADERS, page_data)
    assert result.score == 100 - 20 - 10
    assert result.dangerous_inline_scripts == 3
    assert all(c.missing_http_only and not c.missing_secure for c in result.cookie_issues)


def test_failed_header_fetch_counts_all_headers_missing():
    result = score_security("https://example.com/", None, {})
    assert result.score == 50


def test_long_header_values_are_truncated():
    headers = {**ALL_HEADERS, "content-security-policy": "x" * 500, "permissions-policy": "y" * 500}
    result = score_security("https://example.com/", headers, {})
    assert len(result.headers.csp.value) == 300
    assert len(result.headers.permissions_policy.value) == 200


@pytest.mark.asyncio
async def test_fetch_headers_returns_response_headers():
    with respx.mock:
        respx.get("https://example.com/").respond(200, headers={"X-Frame-Options": "DENY"})
        headers = await fetch_headers("https://example.com/")
    assert headers["x-frame-options"] == "DENY"


@pytest.mark.asyncio
async def test_fetch_headers_failure_returns_none():
    with respx.mock:
        respx.get("https://example.com/").mock(side_effect=httpx.ConnectTimeout("slow"))
        assert await fetch_headers("https://example.com/") is None


@pytest.mark.asyncio
async def test_fetch_headers_unsafe_redirect_returns_none():
    with respx.mock:
        respx.get("https://example.com/").respond(301, headers={"Location": "http://10.0.0.1/"})
        assert await fetch_headers("https://example.com/") is None


@pytest.mark.asyncio
async def test_check_security_reads_page_data(fake_page_cls):
    page = fake_page_cls({"mixedItems": {"mixedItems": [], "inlineScripts": 2, "cookies": []}})
    result = await check_security(page, "https://example.com/", ALL_HEADERS)
    assert result.dangerous_inline_scripts == 2
    assert page.evaluate_calls[0][1] == 20


@pytest.mark.asyncio
async def test_fetch_headers_malformed_redirect_returns_none():
    with respx.mock:
        respx.get("https://example.com/").respond(302, headers={"Location": "http://example.com:99999/"})
        assert await fetch_headers("https://example.com/") is None
