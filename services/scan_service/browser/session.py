import base64
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from playwright.async_api import (
    Browser,
    Page,
    Response,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from config.logging_config import get_logger, scan_logger
from services.scan_service.config import settings
from services.scan_service.metrics import navigation_fallbacks_total

logger = get_logger(__name__)

HARDENED_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-plugins",
    "--no-first-run",
    "--disable-default-apps",
    "--disable-background-networking",
]

LOCAL_CHROME_PATHS = {
    "win32": r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    "linux": "/usr/bin/google-chrome",
    "darwin": "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
}

CONTENT_TYPE_CLASSES = (
    ("javascript", "js"),
    ("css", "css"),
    ("image", "image"),
    ("font", "font"),
    ("html", "html"),
)


@dataclass
class ResourceSample:
    type: str
    size_bytes: int
    url: str


def classify_content_type(content_type: str) -> str:
    content_type = (content_type or "").lower()
    for needle, kind in CONTENT_TYPE_CLASSES:
        if needle in content_type:
            return kind
    return "other"


def browser_launch_options(environment: str | None = None, platform: str | None = None) -> dict[str, Any]:
    """Production runs Playwright's bundled Chromium; development prefers a local Chrome install."""
    environment = (environment or settings.environment).lower()
    platform = platform or sys.platform

    options: dict[str, Any] = {"headless": True, "args": list(HARDENED_ARGS)}
    if settings.browser_executable_path:
        options["executable_path"] = settings.browser_executable_path
    elif environment != "production":
        local_path = LOCAL_CHROME_PATHS.get(platform)
        if local_path and Path(local_path).exists():
            options["executable_path"] = local_path
    return options


def to_data_uri(image: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


async def capture_screenshot(page: Page, full_page: bool = False, quality: int | None = None) -> str:
    buf = await page.screenshot(
        full_page=full_page,
        type="jpeg",
        quality=quality or settings.screenshot_quality,
    )
    return to_data_uri(buf)


class PageSession:
    """One browser and one page for the lifetime of a single scan.

    Use as an async context manager; the browser is closed on every exit
    path and errors raised while closing are logged, never propagated.
    """

    def __init__(self, playwright_factory: Callable = async_playwright, launch_options: dict | None = None):
        self._playwright_factory = playwright_factory
        self._launch_options = launch_options
        self._playwright = None
        self.browser: Browser | None = None
        self.page: Page | None = None
        self.resources: list[ResourceSample] = []

    async def __aenter__(self) -> "PageSession":
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        self._playwright = await self._playwright_factory().start()
        self.browser = await self._playwright.chromium.launch(**(self._launch_options or browser_launch_options()))
        self.page = await self.browser.new_page(
            viewport={"width": settings.viewport_width, "height": settings.viewport_height}
        )
        self.page.set_default_timeout(settings.operation_timeout_ms)
        self.page.set_default_navigation_timeout(settings.operation_timeout_ms)
        self.page.on("response", self._record_response)

    def _record_response(self, response: Response) -> None:
        try:
            headers = response.headers
            try:
                size = int(headers.get("content-length") or 0)
            except ValueError:
                size = 0
            self.resources.append(
                ResourceSample(
                    type=classify_content_type(headers.get("content-type", "")),
                    size_bytes=size,
                    url=response.url,
                )
            )
        except Exception as e:
            logger.debug(f"Could not record response: {e}")

    async def navigate(self, url: str) -> int:
        """Load *url* and return the wall-clock navigation time in milliseconds.

        Timeouts fall back to waiting for ``<body>`` and then to a fresh
        ``domcontentloaded`` navigation; any other navigation error propagates.
        """
        page = self.page
        start = time.monotonic()
        try:
            await page.goto(url, wait_until="networkidle", timeout=settings.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            scan_logger.log_navigation_fallback(url, "body")
            navigation_fallbacks_total.labels(strategy="body").inc()
            try:
                await page.wait_for_selector("body", state="attached", timeout=settings.body_wait_timeout_ms)
            except PlaywrightTimeoutError:
                scan_logger.log_navigation_fallback(url, "domcontentloaded")
                navigation_fallbacks_total.labels(strategy="domcontentloaded").inc()
                await page.goto(url, wait_until="domcontentloaded", timeout=settings.navigation_timeout_ms)
        return int((time.monotonic() - start) * 1000)

    async def close(self) -> None:
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.debug(f"Error closing browser: {e}")
            self.browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping playwright: {e}")
            self._playwright = None
        self.page = None
