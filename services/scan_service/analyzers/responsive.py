import asyncio

from playwright.async_api import Error as PlaywrightError, Page

from config.logging_config import get_logger
from services.scan_service.browser.session import capture_screenshot
from services.scan_service.config import settings
from services.scan_service.schemas.report import (
    ElementConsistency,
    ResponsiveResult,
    TapTargetElement,
    TapTargets,
)
from services.scan_service.scoring import round_half_up

logger = get_logger(__name__)

MIN_TAP_SIZE = 44
MAX_TAP_ELEMENTS = 20

VISIBLE_COUNTS_JS = """() => {
  const visible = (selector) => Array.from(document.querySelectorAll(selector)).filter((el) => {
    const rect = el.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0 && getComputedStyle(el).display !== 'none';
  }).length;
  return {
    nav: visible('nav, header a, header button, .menu a'),
    content: visible('h1, h2, h3, p, img, article'),
    viewportMeta: document.querySelector('meta[name="viewport"]')?.getAttribute('content') || null,
  };
}"""

MOBILE_LAYOUT_JS = """([minSize, maxElements]) => {
  const targets = Array.from(document.querySelectorAll('a, button, input, select'));
  const small = [];
  targets.forEach((el) => {
    const rect = el.getBoundingClientRect();
    if (rect.width > 0 && rect.height > 0 && (rect.width < minSize || rect.height < minSize) && small.length < maxElements) {
      small.push({
        html: el.outerHTML.substring(0, 150) + (el.outerHTML.length > 150 ? '...' : ''),
        width: Math.round(rect.width),
        height: Math.round(rect.height),
        x: Math.round(rect.x),
        y: Math.round(rect.y),
      });
    }
  });
  return {
    horizontalScroll: document.documentElement.scrollWidth > window.innerWidth,
    tapTotal: targets.length,
    tapElements: small,
  };
}"""


def has_device_width_viewport(viewport_meta: str | None) -> bool:
    return bool(viewport_meta) and "width=device-width" in viewport_meta


def score_responsive(desktop: dict, mobile: dict, mobile_visible: dict, mobile_screenshot: str | None = None) -> ResponsiveResult:
    score = 100
    issues = []

    has_viewport_meta = has_device_width_viewport(desktop.get("viewportMeta"))
    if not has_viewport_meta:
        score -= 30
        issues.append("Missing or incorrect viewport meta tag.")

    horizontal_scroll = bool(mobile.get("horizontalScroll"))
    if horizontal_scroll:
        score -= 30
        issues.append("Page has horizontal scroll on mobile devices (layout overflow).")

    tap_elements = [TapTargetElement(**e) for e in mobile.get("tapElements", [])]
    tap_total = mobile.get("tapTotal", 0)
    if tap_elements:
        penalty = min(20, round_half_up(len(tap_elements) / max(1, tap_total) * 40))
        score -= penalty
        if penalty > 5:
            issues.append(f"{len(tap_elements)} interactive elements are too small (target size < {MIN_TAP_SIZE}px).")

    desktop_total = desktop.get("nav", 0) + desktop.get("content", 0)
    mobile_total = mobile_visible.get("nav", 0) + mobile_visible.get("content", 0)
    hidden = max(0, desktop_total - mobile_total)
    if hidden > desktop_total * 0.3:
        score -= 20
        issues.append(f"High element inconsistency: {hidden} elements from desktop are hidden on mobile.")

    return ResponsiveResult(
        score=max(0, score),
        is_responsive=has_viewport_meta and not horizontal_scroll,
        has_viewport_meta=has_viewport_meta,
        horizontal_scroll_mobile=horizontal_scroll,
        mobile_screenshot=mobile_screenshot,
        element_consistency=ElementConsistency(
            desktop_visible=desktop_total,
            mobile_visible=mobile_total,
            hidden_on_mobile=hidden,
        ),
        tap_targets=TapTargets(issues=len(tap_elements), total=tap_total, elements=tap_elements),
        issues=issues,
    )


async def check_responsive(page: Page) -> ResponsiveResult:
    desktop = await page.evaluate(VISIBLE_COUNTS_JS)
    desktop_size = page.viewport_size

    await page.set_viewport_size({"width": settings.mobile_viewport_width, "height": settings.mobile_viewport_height})
    try:
        await asyncio.sleep(settings.mobile_settle_s)

        mobile_screenshot = None
        try:
            mobile_screenshot = await capture_screenshot(page)
        except PlaywrightError as e:
            logger.warning(f"Mobile screenshot failed: {e}")

        mobile = await page.evaluate(MOBILE_LAYOUT_JS, [MIN_TAP_SIZE, MAX_TAP_ELEMENTS])
        mobile_visible = await page.evaluate(VISIBLE_COUNTS_JS)
    finally:
        if desktop_size:
            await page.set_viewport_size(desktop_size)

    return score_responsive(desktop, mobile, mobile_visible, mobile_screenshot)
