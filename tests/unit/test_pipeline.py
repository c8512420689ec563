import pytest
from playwright.async_api import Error as PlaywrightError

from services.scan_service import pipeline
from services.scan_service.analyzers.images import score_images
from services.scan_service.analyzers.sitemap import NOT_FOUND
from services.scan_service.feature_config import FeatureConfig, Features
from services.scan_service.pipeline import CHECKERS, ScanContext, run_checkers, run_scan
from services.scan_service.schemas.report import SitemapResult

HARDENED = {
    "strict-transport-security": "max-age=31536000",
    "content-security-policy": "default-src 'self'",
    "x-frame-options": "DENY",
    "x-content-type-options": "nosniff",
    "referrer-policy": "no-referrer",
}

PAGE_RESULTS = {
    "mixedItems": {"mixedItems": [], "inlineScripts": 0, "cookies": []},
    "const add = (name": [],
    "htmlVersion": {"htmlVersion": "HTML5"},
}


class FakeSession:
    def __init__(self, page, nav_error=None):
        self.page = page
        self.resources = []
        self.nav_error = nav_error
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    async def navigate(self, url):
        if self.nav_error:
            raise self.nav_error
        return 1234


def _only(*names):
    return FeatureConfig(features=Features(**{f: f in names for f in Features.model_fields}))


@pytest.fixture
def header_fetches(monkeypatch):
    calls = []

    async def fake_fetch(url):
        calls.append(url)
        return HARDENED

    monkeypatch.setattr(pipeline, "fetch_headers", fake_fetch)
    return calls


def test_checker_order_is_fixed():
    assert [name for name, _ in CHECKERS] == [
        "seo", "headings", "images", "links", "visual", "performance",
        "accessibility", "responsive", "security", "tech_stack", "sitemap",
    ]


@pytest.mark.asyncio
async def test_failing_checkers_are_isolated(monkeypatch, fake_page_cls, header_fetches):
    async def fake_images(page):
        return score_images([])

    async def broken(*args):
        raise RuntimeError("checker exploded")

    async def fake_sitemap(url):
        return SitemapResult(error=NOT_FOUND)

    monkeypatch.setattr(pipeline, "check_images", fake_images)
    monkeypatch.setattr(pipeline, "check_headings", broken)
    monkeypatch.setattr(pipeline, "check_tech_stack", broken)
    monkeypatch.setattr(pipeline, "check_sitemap", fake_sitemap)

    session = FakeSession(fake_page_cls(PAGE_RESULTS))
    features = _only("headings", "images", "security", "tech_stack", "sitemap")
    report = await run_scan("https://example.com/", features=features, session_factory=lambda: session)

    assert report.failed_checkers == ["headings", "techStack"]
    assert report.overall_score == 100
    assert report.screenshot.startswith("data:image/jpeg;base64,")
    assert session.closed

    body = report.to_response()
    assert "headings" not in body
    assert "techStack" not in body
    assert "seo" not in body
    assert body["sitemap"]["error"] == NOT_FOUND
    assert body["failedCheckers"] == ["headings", "techStack"]
    assert body["images"]["score"] == 100


@pytest.mark.asyncio
async def test_headers_fetched_once_for_security_and_tech_stack(fake_page_cls, header_fetches):
    ctx = ScanContext("scan-1", "https://example.com/", FakeSession(fake_page_cls(PAGE_RESULTS)), 800)
    sections, failed = await run_checkers(ctx, _only("security", "tech_stack"))

    assert failed == []
    assert header_fetches == ["https://example.com/"]
    assert sections["security"].score == 100
    assert [t.name for t in sections["tech_stack"].detected] == ["JavaScript", "HTML5", "CSS"]


@pytest.mark.asyncio
async def test_failed_header_fetch_is_cached_too(monkeypatch, fake_page_cls):
    calls = []

    async def failing_fetch(url):
        calls.append(url)
        return None

    monkeypatch.setattr(pipeline, "fetch_headers", failing_fetch)
    ctx = ScanContext("scan-2", "https://example.com/", FakeSession(fake_page_cls()), 0)

    assert await ctx.response_headers() is None
    assert await ctx.response_headers() is None
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_disabled_checkers_never_run(monkeypatch, fake_page_cls):
    ran = []

    async def spy(*args):
        ran.append(args)

    for name in ("check_seo", "check_headings", "check_links", "check_visual", "check_sitemap"):
        monkeypatch.setattr(pipeline, name, spy)

    session = FakeSession(fake_page_cls())
    report = await run_scan("https://example.com/", features=_only(), session_factory=lambda: session)

    assert ran == []
    assert report.overall_score == 0
    assert report.failed_checkers == []


@pytest.mark.asyncio
async def test_navigation_error_propagates_and_closes_session(fake_page_cls):
    session = FakeSession(fake_page_cls(), nav_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    with pytest.raises(PlaywrightError):
        await run_scan("https://example.com/", features=_only("seo"), session_factory=lambda: session)
    assert session.closed
