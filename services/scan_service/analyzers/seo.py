from playwright.async_api import Page

from services.scan_service.schemas.report import SEOResult, TextMetric

ISSUE_PENALTY = 12
TITLE_MIN, TITLE_MAX = 30, 60
DESCRIPTION_MIN, DESCRIPTION_MAX = 120, 160

EXTRACT_SEO_JS = """() => {
  const meta = (name) =>
    document.querySelector(`meta[name="${name}"]`)?.getAttribute('content') ||
    document.querySelector(`meta[property="${name}"]`)?.getAttribute('content') || null;

  const ogTags = {};
  document.querySelectorAll('meta[property^="og:"]').forEach((el) => {
    const prop = el.getAttribute('property');
    const content = el.getAttribute('content');
    if (prop && content) ogTags[prop] = content;
  });

  return {
    title: document.title,
    metaDescription: meta('description'),
    canonical: document.querySelector("link[rel='canonical']")?.getAttribute('href') || null,
    robots: meta('robots'),
    language: document.documentElement.lang || null,
    favicon: document.querySelector("link[rel='icon'], link[rel='shortcut icon']")?.getAttribute('href') || null,
    viewport: meta('viewport'),
    ogTags,
  };
}"""


def _length_status(value: str | None, minimum: int, maximum: int) -> str:
    if not value:
        return "missing"
    if len(value) < minimum:
        return "too_short"
    if len(value) > maximum:
        return "too_long"
    return "good"


def score_seo(data: dict) -> SEOResult:
    title = data.get("title") or None
    description = data.get("metaDescription") or None
    og_tags = data.get("ogTags") or {}
    issues = []

    title_status = _length_status(title, TITLE_MIN, TITLE_MAX)
    if title_status == "missing":
        issues.append("Missing page title")
    elif title_status == "too_short":
        issues.append(f"Title too short (< {TITLE_MIN} chars)")
    elif title_status == "too_long":
        issues.append(f"Title too long (> {TITLE_MAX} chars)")

    desc_status = _length_status(description, DESCRIPTION_MIN, DESCRIPTION_MAX)
    if desc_status == "missing":
        issues.append("Missing meta description")
    elif desc_status == "too_short":
        issues.append(f"Meta description too short (< {DESCRIPTION_MIN} chars)")
    elif desc_status == "too_long":
        issues.append(f"Meta description too long (> {DESCRIPTION_MAX} chars)")

    if not data.get("canonical"):
        issues.append("Missing canonical URL")
    if not data.get("viewport"):
        issues.append("Missing viewport meta tag")
    if not data.get("language"):
        issues.append("Missing language attribute")
    if not og_tags:
        issues.append("No Open Graph tags found")

    return SEOResult(
        score=max(0, 100 - ISSUE_PENALTY * len(issues)),
        title=TextMetric(value=title, length=len(title or ""), status=title_status),
        meta_description=TextMetric(value=description, length=len(description or ""), status=desc_status),
        canonical=data.get("canonical"),
        og_tags=og_tags,
        robots=data.get("robots"),
        language=data.get("language"),
        favicon=data.get("favicon"),
        viewport=data.get("viewport"),
        issues=issues,
    )


async def check_seo(page: Page) -> SEOResult:
    return score_seo(await page.evaluate(EXTRACT_SEO_JS))
