"""Scan orchestration: one browser session, every enabled checker in order, one report."""

import time
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Mapping

from playwright.async_api import Error as PlaywrightError
from pydantic.alias_generators import to_camel

from config.logging_config import get_logger, scan_logger
from services.scan_service.analyzers.accessibility import check_accessibility
from services.scan_service.analyzers.contrast import check_visual
from services.scan_service.analyzers.headings import check_headings
from services.scan_service.analyzers.images import check_images
from services.scan_service.analyzers.links import check_links
from services.scan_service.analyzers.performance import check_performance
from services.scan_service.analyzers.responsive import check_responsive
from services.scan_service.analyzers.security import check_security, fetch_headers
from services.scan_service.analyzers.seo import check_seo
from services.scan_service.analyzers.sitemap import check_sitemap
from services.scan_service.analyzers.tech_stack import check_tech_stack
from services.scan_service.browser.session import PageSession, capture_screenshot
from services.scan_service.feature_config import FeatureConfig, load_feature_config
from services.scan_service.metrics import checker_failures_total, scan_duration
from services.scan_service.schemas.report import ScanReport
from services.scan_service.scoring import CATEGORY_WEIGHTS, compute_overall_score

logger = get_logger(__name__)

_UNFETCHED = object()


class ScanContext:
    """State shared by the checkers of a single scan."""

    def __init__(self, scan_id: str, url: str, session: PageSession, load_time_ms: int):
        self.scan_id = scan_id
        self.url = url
        self.session = session
        self.load_time_ms = load_time_ms
        self._headers = _UNFETCHED

    @property
    def page(self):
        return self.session.page

    async def response_headers(self) -> Mapping[str, str] | None:
        # fetched at most once per scan
        if self._headers is _UNFETCHED:
            self._headers = await fetch_headers(self.url)
        return self._headers


async def _run_security(ctx: ScanContext):
    return await check_security(ctx.page, ctx.url, await ctx.response_headers())


async def _run_tech_stack(ctx: ScanContext):
    return await check_tech_stack(ctx.page, await ctx.response_headers())


Checker = Callable[[ScanContext], Awaitable]

# run order matters: Responsive resizes the viewport
CHECKERS: tuple[tuple[str, Checker], ...] = (
    ("seo", lambda ctx: check_seo(ctx.page)),
    ("headings", lambda ctx: check_headings(ctx.page)),
    ("images", lambda ctx: check_images(ctx.page)),
    ("links", lambda ctx: check_links(ctx.page, ctx.url)),
    ("visual", lambda ctx: check_visual(ctx.page)),
    ("performance", lambda ctx: check_performance(ctx.page, ctx.session.resources, ctx.load_time_ms)),
    ("accessibility", lambda ctx: check_accessibility(ctx.page)),
    ("responsive", lambda ctx: check_responsive(ctx.page)),
    ("security", _run_security),
    ("tech_stack", _run_tech_stack),
    ("sitemap", lambda ctx: check_sitemap(ctx.url)),
)


async def run_checkers(ctx: ScanContext, features: FeatureConfig) -> tuple[dict, list[str]]:
    """Run every enabled checker; a checker that raises is left out and named in the second value."""
    sections = {}
    failed = []
    for name, checker in CHECKERS:
        if not features.is_enabled(name):
            continue
        try:
            sections[name] = await checker(ctx)
        except Exception as e:
            failed.append(to_camel(name))
            checker_failures_total.labels(checker=name).inc()
            scan_logger.log_checker_failed(ctx.scan_id, name, e)
    return sections, failed


def assemble_report(url: str, screenshot: str | None, sections: dict, failed: list[str]) -> ScanReport:
    overall = compute_overall_score(
        {name: result.score for name, result in sections.items() if name in CATEGORY_WEIGHTS}
    )
    return ScanReport(
        url=url,
        scan_date=datetime.now(timezone.utc),
        overall_score=overall,
        screenshot=screenshot,
        failed_checkers=failed,
        **sections,
    )


async def run_scan(
    url: str,
    features: FeatureConfig | None = None,
    session_factory: Callable[[], PageSession] = PageSession,
    scan_id: str | None = None,
    client_id: str = "unknown",
) -> ScanReport:
    """Scan an already validated *url*.

    Navigation errors other than timeouts propagate; the browser is closed
    on every path.
    """
    features = features or load_feature_config()
    scan_id = scan_id or str(uuid.uuid4())
    started = time.monotonic()
    scan_logger.log_scan_started(scan_id, url, client_id)

    async with session_factory() as session:
        load_time_ms = await session.navigate(url)

        screenshot = None
        try:
            screenshot = await capture_screenshot(session.page, full_page=True)
        except PlaywrightError as e:
            logger.warning(f"Full-page screenshot failed for {url}: {e}", extra={"scan_id": scan_id})

        ctx = ScanContext(scan_id, url, session, load_time_ms)
        sections, failed = await run_checkers(ctx, features)

    report = assemble_report(url, screenshot, sections, failed)
    duration = time.monotonic() - started
    scan_duration.observe(duration)
    scan_logger.log_scan_completed(scan_id, url, report.overall_score, duration)
    return report
