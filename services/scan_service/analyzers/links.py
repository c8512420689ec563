import asyncio

import httpx
from playwright.async_api import Page

from config.logging_config import get_logger
from services.scan_service.browser.highlight import PREDICATES_JS, capture_highlighted
from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest, UnsafeTargetError
from services.scan_service.guard.url_guard import build_guarded_client
from services.scan_service.schemas.report import (
    DeadLink,
    ElementSnippet,
    LinkDetails,
    LinkItem,
    LinkResult,
    Screenshot,
)

logger = get_logger(__name__)

BUTTON_SELECTOR = "button, [role='button'], input[type='button'], input[type='submit']"
UNLABELED_BUTTON_COLOR = "#eab308"
DEAD_LINK_PENALTY = 15
UNLABELED_BUTTON_PENALTY = 10

EXTRACT_LINKS_JS = "([baseUrl, buttonSelector]) => {" + PREDICATES_JS + """
  const origin = new URL(baseUrl).origin;
  const anchors = Array.from(document.querySelectorAll('a'));
  const internal = [];
  const external = [];

  anchors.forEach((a) => {
    const href = a.href;
    if (!href || href.startsWith('javascript:') || href.startsWith('#')) return;
    const item = { href: href.substring(0, 200), text: (a.textContent || '').trim().substring(0, 80) };
    try {
      if (new URL(href).origin === origin) internal.push(item); else external.push(item);
    } catch (e) {
      internal.push(item);
    }
  });

  const unlabeled = Array.from(document.querySelectorAll(buttonSelector)).filter(PREDICATES.unlabeledControl);
  return {
    total: anchors.length,
    internal,
    external,
    buttonsNoLabel: unlabeled.map((b) => ({ tag: b.tagName.toLowerCase(), html: b.outerHTML.substring(0, 150) })),
  };
}"""


async def _probe(client: httpx.AsyncClient, sem: asyncio.Semaphore, url: str) -> DeadLink | None:
    async with sem:
        try:
            r = await client.head(url)
            if r.status_code in (405, 501):
                r = await client.get(url)
        except UnsafeTargetError as e:
            logger.debug(f"Skipping unsafe link {url}: {e.message}")
            return None
        except httpx.HTTPError as e:
            logger.debug(f"Link probe failed for {url}: {e}")
            return DeadLink(url=url[:200], status=0)
        except (InvalidScanRequest, httpx.InvalidURL, ValueError) as e:
            logger.debug(f"Malformed link {url}: {e}")
            return DeadLink(url=url[:200], status=0)

    if r.status_code >= 400:
        return DeadLink(url=url[:200], status=r.status_code)
    return None


async def find_dead_links(urls: list[str]) -> list[DeadLink]:
    """HEAD-probe *urls* concurrently; returns dead ones in input order."""
    if not urls:
        return []

    sem = asyncio.Semaphore(settings.link_check_concurrency)
    async with build_guarded_client(timeout=settings.link_probe_timeout_s) as client:
        results = await asyncio.gather(*[_probe(client, sem, u) for u in urls])
    return [r for r in results if r is not None]


def score_links(data: dict, dead_links: list[DeadLink]) -> LinkResult:
    buttons_no_label = [ElementSnippet(**b) for b in data.get("buttonsNoLabel", [])]
    unlabeled = len(buttons_no_label)

    issues = []
    if dead_links:
        issues.append(f"{len(dead_links)} dead link(s) found")
    if unlabeled:
        issues.append(f"{unlabeled} button(s) without accessible label")

    details = LinkDetails(
        internal=[LinkItem(**l) for l in data.get("internal", [])],
        external=[LinkItem(**l) for l in data.get("external", [])],
        buttons_no_label=buttons_no_label,
    )
    return LinkResult(
        score=max(0, 100 - DEAD_LINK_PENALTY * len(dead_links) - UNLABELED_BUTTON_PENALTY * unlabeled),
        total=data.get("total", 0),
        internal=len(details.internal),
        external=len(details.external),
        dead_links=dead_links,
        buttons_without_labels=unlabeled,
        details=details,
        issues=issues,
    )


async def check_links(page: Page, target_url: str) -> LinkResult:
    data = await page.evaluate(EXTRACT_LINKS_JS, [target_url, BUTTON_SELECTOR])

    candidates = [l["href"] for l in data.get("internal", []) + data.get("external", [])]
    dead_links = await find_dead_links(candidates[:settings.max_link_checks])

    result = score_links(data, dead_links)
    if result.buttons_without_labels:
        shot = await capture_highlighted(page, BUTTON_SELECTOR, "unlabeledControl", UNLABELED_BUTTON_COLOR)
        if shot:
            result.screenshots.append(
                Screenshot(label=f"{result.buttons_without_labels} button(s) without label", image=shot)
            )
    return result
