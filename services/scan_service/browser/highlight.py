"""Highlight offending elements in the live page and capture them as evidence.

Element filters are selected by name from a fixed table that ships with the
in-page scripts below; nothing is compiled from caller-supplied strings.
"""

import asyncio

from playwright.async_api import Error as PlaywrightError, Page

from config.logging_config import get_logger
from services.scan_service.browser.session import capture_screenshot
from services.scan_service.config import settings

logger = get_logger(__name__)

PREDICATES_JS = """
const PREDICATES = {
  missingAlt: (el) => !el.hasAttribute('alt'),
  brokenImage: (el) => el.naturalWidth === 0 && !!el.src,
  unlabeledControl: (el) => {
    const text = ((el.tagName === 'INPUT' ? el.value : el.textContent) || '').trim();
    return !text && !el.getAttribute('aria-label') && !el.getAttribute('title');
  },
  linkWithoutText: (el) => !(el.textContent || '').trim() && !el.getAttribute('aria-label'),
  buttonWithoutText: (el) => !(el.textContent || '').trim() && !el.getAttribute('aria-label'),
  inputWithoutLabel: (el) => {
    const id = el.getAttribute('id');
    const hasLabel = id ? document.querySelector('label[for="' + CSS.escape(id) + '"]') : null;
    return !hasLabel && !el.getAttribute('aria-label') && !el.getAttribute('aria-labelledby');
  },
};
"""

PREDICATE_NAMES = frozenset({
    "missingAlt",
    "brokenImage",
    "unlabeledControl",
    "linkWithoutText",
    "buttonWithoutText",
    "inputWithoutLabel",
})

_MARK_MATCHES_JS = "([selector, predicate, color]) => {" + PREDICATES_JS + """
  const matches = Array.from(document.querySelectorAll(selector)).filter(PREDICATES[predicate]);
  if (matches.length === 0) return 0;
  const VOID = new Set(['IMG', 'INPUT', 'SELECT', 'TEXTAREA', 'BR', 'HR', 'VIDEO', 'IFRAME']);
  matches.forEach((el) => {
    el.setAttribute('data-scan-highlight', JSON.stringify({
      outline: el.style.outline, outlineOffset: el.style.outlineOffset, boxShadow: el.style.boxShadow,
    }));
    el.style.outline = `3px solid ${color}`;
    el.style.outlineOffset = '2px';
    el.style.boxShadow = `0 0 8px ${color}80`;

    const badge = document.createElement('div');
    badge.setAttribute('data-scan-badge', 'true');
    badge.style.cssText = `position:absolute;top:-18px;left:0;background:${color};color:#fff;font-size:10px;padding:1px 6px;border-radius:3px;z-index:999999;font-family:sans-serif;pointer-events:none;white-space:nowrap;`;
    badge.textContent = '\\u26A0';
    const host = VOID.has(el.tagName) ? el.parentElement : el;
    if (!host) return;
    if (getComputedStyle(host).position === 'static' && !host.hasAttribute('data-scan-position')) {
      host.setAttribute('data-scan-position', host.style.position || '');
      host.style.position = 'relative';
    }
    host.appendChild(badge);
  });
  matches[0].scrollIntoView({ block: 'center' });
  return matches.length;
}"""

_CLEAR_MARKS_JS = """() => {
  document.querySelectorAll('[data-scan-badge]').forEach((el) => el.remove());
  document.querySelectorAll('[data-scan-highlight]').forEach((el) => {
    let saved = {};
    try { saved = JSON.parse(el.getAttribute('data-scan-highlight')) || {}; } catch (e) {}
    el.style.outline = saved.outline || '';
    el.style.outlineOffset = saved.outlineOffset || '';
    el.style.boxShadow = saved.boxShadow || '';
    el.removeAttribute('data-scan-highlight');
  });
  document.querySelectorAll('[data-scan-position]').forEach((el) => {
    el.style.position = el.getAttribute('data-scan-position');
    el.removeAttribute('data-scan-position');
  });
}"""

_MATCH_INDICES_JS = "([selector, predicate]) => {" + PREDICATES_JS + """
  const result = [];
  document.querySelectorAll(selector).forEach((el, idx) => {
    if (PREDICATES[predicate](el)) result.push(idx);
  });
  return result;
}"""

_OUTLINE_ONE_JS = """(el, color) => {
  el.scrollIntoView({ block: 'center', behavior: 'instant' });
  el.setAttribute('data-scan-outline', JSON.stringify({
    outline: el.style.outline, outlineOffset: el.style.outlineOffset, boxShadow: el.style.boxShadow,
  }));
  el.style.outline = `3px solid ${color}`;
  el.style.outlineOffset = '2px';
  el.style.boxShadow = `0 0 12px ${color}80`;
}"""

_CLEAR_ONE_JS = """(el) => {
  let saved = {};
  try { saved = JSON.parse(el.getAttribute('data-scan-outline')) || {}; } catch (e) {}
  el.style.outline = saved.outline || '';
  el.style.outlineOffset = saved.outlineOffset || '';
  el.style.boxShadow = saved.boxShadow || '';
  el.removeAttribute('data-scan-outline');
}"""


def _require_predicate(predicate: str) -> None:
    if predicate not in PREDICATE_NAMES:
        raise ValueError(f"Unknown element predicate: {predicate}")


async def capture_highlighted(page: Page, selector: str, predicate: str, color: str) -> str | None:
    """Outline every match, screenshot the viewport around the first one, then remove the marks.

    Returns ``None`` without taking a screenshot when nothing matches.
    """
    _require_predicate(predicate)

    try:
        count = await page.evaluate(_MARK_MATCHES_JS, [selector, predicate, color])
        if not count:
            return None
        await asyncio.sleep(settings.highlight_settle_s)
        return await capture_screenshot(page, quality=settings.highlight_screenshot_quality)
    finally:
        await page.evaluate(_CLEAR_MARKS_JS)


async def capture_element_screenshots(
    page: Page,
    selector: str,
    predicate: str,
    color: str,
    limit: int | None = None,
) -> list[str | None]:
    """One viewport screenshot per matching element, in document order.

    The result has one slot per match; slots past *limit* and elements that
    could not be captured hold ``None``.
    """
    _require_predicate(predicate)
    limit = settings.max_element_screenshots if limit is None else limit

    handles = await page.query_selector_all(selector)
    try:
        indices = await page.evaluate(_MATCH_INDICES_JS, [selector, predicate])
        screenshots: list[str | None] = []

        for idx in indices[:limit]:
            handle = handles[idx] if idx < len(handles) else None
            if handle is None:
                screenshots.append(None)
                continue
            try:
                await handle.evaluate(_OUTLINE_ONE_JS, color)
                await asyncio.sleep(settings.element_settle_s)
                screenshots.append(await capture_screenshot(page, quality=65))
            except PlaywrightError as e:
                logger.debug(f"Element screenshot failed for {selector}[{idx}]: {e}")
                screenshots.append(None)
            finally:
                try:
                    await handle.evaluate(_CLEAR_ONE_JS)
                except PlaywrightError:
                    pass

        screenshots.extend([None] * (len(indices) - len(screenshots)))
        return screenshots
    finally:
        for handle in handles:
            await handle.dispose()
