import re
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from config.logging_config import get_logger
from services.scan_service.config import settings
from services.scan_service.exceptions import InvalidScanRequest, UnsafeTargetError
from services.scan_service.guard.url_guard import build_guarded_client
from services.scan_service.schemas.report import SitemapResult, SitemapUrl

logger = get_logger(__name__)

NOT_FOUND = "No sitemap found"
ROBOTS_SITEMAP_RE = re.compile(r"^\s*Sitemap:\s*(\S+)", re.IGNORECASE | re.MULTILINE)


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


async def _fetch_text(client: httpx.AsyncClient, url: str) -> str | None:
    try:
        r = await client.get(url)
    except UnsafeTargetError as e:
        logger.warning(f"Sitemap fetch skipped for {url}: {e.message}")
        return None
    except httpx.HTTPError as e:
        logger.debug(f"Sitemap fetch failed for {url}: {e}")
        return None
    except (InvalidScanRequest, httpx.InvalidURL, ValueError) as e:
        logger.debug(f"Malformed sitemap URL {url}: {e}")
        return None
    return r.text if r.is_success else None


def sitemap_from_robots(robots_txt: str, origin: str) -> str | None:
    m = ROBOTS_SITEMAP_RE.search(robots_txt or "")
    return urljoin(origin + "/", m.group(1).strip()) if m else None


def _text(tag, name: str) -> str | None:
    child = tag.find(name)
    if child is None:
        return None
    return child.get_text(strip=True) or None


def parse_sitemap(xml: str) -> tuple[list[str], list[SitemapUrl]]:
    """Returns ``(child_sitemaps, urls)``; a urlset has no children, an index has no urls."""
    soup = BeautifulSoup(xml, "xml")

    children = [loc for loc in (_text(s, "loc") for s in soup.find_all("sitemap")) if loc]
    urls = []
    for entry in soup.find_all("url"):
        loc = _text(entry, "loc")
        if loc:
            urls.append(SitemapUrl(
                loc=loc,
                lastmod=_text(entry, "lastmod"),
                changefreq=_text(entry, "changefreq"),
                priority=_text(entry, "priority"),
            ))
    return children, urls


async def _locate(client: httpx.AsyncClient, origin: str) -> tuple[str | None, str | None]:
    for path in ("/sitemap.xml", "/sitemap_index.xml"):
        url = origin + path
        xml = await _fetch_text(client, url)
        if xml:
            return url, xml

    robots = await _fetch_text(client, origin + "/robots.txt")
    declared = sitemap_from_robots(robots, origin) if robots else None
    if declared:
        xml = await _fetch_text(client, declared)
        if xml:
            return declared, xml
    return None, None


async def check_sitemap(target_url: str) -> SitemapResult:
    """Locate and parse the site's sitemap. Never raises; failures are reported in ``error``."""
    try:
        async with build_guarded_client(timeout=settings.sitemap_fetch_timeout_s) as client:
            source, xml = await _locate(client, _origin(target_url))
            if not xml:
                return SitemapResult(error=NOT_FOUND)

            children, urls = parse_sitemap(xml)
            for child in children[:settings.max_sitemap_children]:
                if len(urls) >= settings.max_sitemap_urls:
                    break
                child_xml = await _fetch_text(client, child)
                if child_xml:
                    urls.extend(parse_sitemap(child_xml)[1])

            return SitemapResult(urls=urls[:settings.max_sitemap_urls], source=source)
    except Exception as e:
        logger.warning(f"Sitemap detection failed for {target_url}: {e}")
        return SitemapResult(error=str(e) or "Failed to fetch sitemap")
