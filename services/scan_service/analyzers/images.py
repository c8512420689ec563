from playwright.async_api import Page

from services.scan_service.browser.highlight import capture_highlighted
from services.scan_service.schemas.report import ImageDetail, ImageResult, Screenshot
from services.scan_service.scoring import round_half_up

MISSING_ALT_COLOR = "#f97316"
BROKEN_COLOR = "#ef4444"

EXTRACT_IMAGES_JS = """() => Array.from(document.querySelectorAll('img')).map((img) => ({
  src: img.src || img.getAttribute('data-src') || '',
  alt: img.alt || null,
  hasAlt: img.hasAttribute('alt'),
  naturalWidth: img.naturalWidth,
  width: img.width,
  height: img.height,
  loading: img.loading,
}))"""


def is_broken(image: dict) -> bool:
    return image.get("naturalWidth", 0) == 0 and bool(image.get("src"))


def score_images(images: list[dict]) -> ImageResult:
    total = len(images)
    without_alt = sum(1 for i in images if not i.get("hasAlt"))
    broken = sum(1 for i in images if is_broken(i))
    lazy = sum(1 for i in images if i.get("loading") == "lazy")

    issues = []
    if without_alt:
        issues.append(f"{without_alt} image(s) missing alt attribute")
    if broken:
        issues.append(f"{broken} broken image(s) detected")

    if total == 0:
        score = 100
    else:
        score = max(0, 100 - round_half_up((without_alt + broken) / total * 100))

    details = [
        ImageDetail(
            src=(i.get("src") or "")[:200],
            alt=i.get("alt"),
            has_alt=bool(i.get("hasAlt")),
            status="broken" if is_broken(i) else "ok",
            width=i.get("width") or 0,
            height=i.get("height") or 0,
            loading=i.get("loading") or "eager",
        )
        for i in images
    ]

    return ImageResult(
        score=score,
        total=total,
        with_alt=total - without_alt,
        without_alt=without_alt,
        broken=broken,
        lazy_loaded=lazy,
        details=details,
        issues=issues,
    )


async def check_images(page: Page) -> ImageResult:
    result = score_images(await page.evaluate(EXTRACT_IMAGES_JS))

    if result.without_alt:
        shot = await capture_highlighted(page, "img", "missingAlt", MISSING_ALT_COLOR)
        if shot:
            result.screenshots.append(Screenshot(label=f"{result.without_alt} image(s) without alt text", image=shot))
    if result.broken:
        shot = await capture_highlighted(page, "img", "brokenImage", BROKEN_COLOR)
        if shot:
            result.screenshots.append(Screenshot(label=f"{result.broken} broken image(s)", image=shot))

    return result
