from typing import Mapping

import httpx
from playwright.async_api import Page

from config.logging_config import get_logger
from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest, UnsafeTargetError
from services.scan_service.guard.url_guard import build_guarded_client
from services.scan_service.schemas.report import (
    CookieIssue,
    HeaderCheck,
    MixedContent,
    SecurityHeaders,
    SecurityRecommendation,
    SecurityResult,
)

logger = get_logger(__name__)

MAX_MIXED_ITEMS = 20

# (field, header, penalty, priority, issue, recommendation)
HEADER_RULES = (
    ("hsts", "strict-transport-security", 15, "High", "Missing Strict-Transport-Security (HSTS) header",
     "Add: Strict-Transport-Security: max-age=31536000; includeSubDomains; preload"),
    ("csp", "content-security-policy", 15, "High", "Missing Content-Security-Policy (CSP) header",
     "Define a Content-Security-Policy to prevent XSS and injection attacks."),
    ("x_frame_options", "x-frame-options", 10, "Medium", "Missing X-Frame-Options header (clickjacking risk)",
     "Add: X-Frame-Options: DENY or SAMEORIGIN to prevent clickjacking."),
    ("x_content_type_options", "x-content-type-options", 5, "Medium", "Missing X-Content-Type-Options header",
     "Add: X-Content-Type-Options: nosniff to prevent MIME sniffing."),
    ("referrer_policy", "referrer-policy", 5, "Low", "Missing Referrer-Policy header",
     "Add: Referrer-Policy: strict-origin-when-cross-origin"),
)

VALUE_LIMITS = {"content-security-policy": 300, "permissions-policy": 200}

EXTRACT_SECURITY_JS = """(maxItems) => {
  const mixed = [];
  document.querySelectorAll('img[src], script[src], link[href], iframe[src], video[src], audio[src]').forEach((el) => {
    const src = el.getAttribute('src') || el.getAttribute('href') || '';
    if (src.startsWith('http://')) mixed.push(src.substring(0, 150));
  });

  const handlers = ['onclick', 'onload', 'onerror', 'onmouseover', 'onfocus', 'onchange', 'onsubmit'];
  let inline = 0;
  document.querySelectorAll('*').forEach((el) => {
    if (handlers.some((attr) => el.hasAttribute(attr))) inline++;
  });
  inline += document.querySelectorAll('script:not([src])').length;

  const cookies = document.cookie.split(';').map((c) => c.trim()).filter(Boolean).map((c) => c.split('=')[0].trim());
  return { mixedItems: mixed.slice(0, maxItems), inlineScripts: inline, cookies };
}"""


async def fetch_headers(url: str) -> httpx.Headers | None:
    """Response headers of a server-side GET; ``None`` when the fetch fails."""
    try:
        async with build_guarded_client(timeout=settings.header_fetch_timeout_s) as client:
            r = await client.get(url)
            return r.headers
    except UnsafeTargetError as e:
        logger.warning(f"Header fetch redirected to unsafe target from {url}: {e.message}")
    except httpx.HTTPError as e:
        logger.warning(f"Header fetch failed for {url}: {e}")
    except (InvalidScanRequest, httpx.InvalidURL, ValueError) as e:
        logger.warning(f"Header fetch hit a malformed URL from {url}: {e}")
    return None


def _header_check(headers: Mapping[str, str], name: str) -> HeaderCheck:
    value = headers.get(name)
    if value is None:
        return HeaderCheck()
    limit = VALUE_LIMITS.get(name)
    return HeaderCheck(present=True, value=value[:limit] if limit else value)


def score_security(target_url: str, headers: Mapping[str, str] | None, page_data: dict) -> SecurityResult:
    headers = headers or {}
    is_https = target_url.lower().startswith("https://")
    checks = SecurityHeaders(
        **{field: _header_check(headers, name) for field, name, *_ in HEADER_RULES},
        permissions_policy=_header_check(headers, "permissions-policy"),
    )

    score = 100
    issues = []
    recommendations = []

    if not is_https:
        score -= 30
        issues.append("Site is not served over HTTPS")
        recommendations.append(SecurityRecommendation(
            priority="Critical", check="HTTPS",
            message="Move all traffic to HTTPS. Obtain an SSL/TLS certificate (e.g. Let's Encrypt).",
        ))

    # Permissions-Policy is reported but carries no penalty
    for field, name, penalty, priority, issue, advice in HEADER_RULES:
        if not getattr(checks, field).present:
            score -= penalty
            issues.append(issue)
            recommendations.append(SecurityRecommendation(priority=priority, check=_check_label(name), message=advice))

    mixed = page_data.get("mixedItems", [])
    if is_https and mixed:
        score -= min(20, 5 * len(mixed))
        issues.append(f"{len(mixed)} mixed content resource(s) loaded over HTTP")
        recommendations.append(SecurityRecommendation(
            priority="High", check="Mixed Content",
            message=f"Update {len(mixed)} HTTP resource(s) to HTTPS to prevent browser warnings and security risks.",
        ))

    cookie_issues = [
        CookieIssue(name=name, missing_secure=not is_https, missing_http_only=True)
        for name in page_data.get("cookies", [])
    ]
    if cookie_issues:
        score -= min(10, 3 * len(cookie_issues))
        issues.append(f"{len(cookie_issues)} cookie(s) accessible via JavaScript (missing HttpOnly flag)")
        recommendations.append(SecurityRecommendation(
            priority="Medium", check="Cookies", message="Set HttpOnly and Secure flags on session/auth cookies.",
        ))

    return SecurityResult(
        score=max(0, score),
        is_https=is_https,
        headers=checks,
        mixed_content=MixedContent(count=len(mixed), items=mixed),
        dangerous_inline_scripts=page_data.get("inlineScripts", 0),
        cookie_issues=cookie_issues,
        recommendations=recommendations,
        issues=issues,
    )


def _check_label(header: str) -> str:
    return {
        "strict-transport-security": "HSTS",
        "content-security-policy": "CSP",
        "x-frame-options": "X-Frame-Options",
        "x-content-type-options": "X-Content-Type-Options",
        "referrer-policy": "Referrer-Policy",
    }[header]


async def check_security(page: Page, target_url: str, headers: Mapping[str, str] | None) -> SecurityResult:
    page_data = await page.evaluate(EXTRACT_SECURITY_JS, MAX_MIXED_ITEMS)
    return score_security(target_url, headers, page_data)
