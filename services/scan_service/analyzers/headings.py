from playwright.async_api import Page

from services.scan_service.schemas.report import Heading, HeadingResult

ISSUE_PENALTY = 20

EXTRACT_HEADINGS_JS = """() => Array.from(document.querySelectorAll('h1, h2, h3, h4, h5, h6')).map((h) => ({
  tag: h.tagName.toLowerCase(),
  text: (h.textContent || '').trim().substring(0, 100),
  level: parseInt(h.tagName[1], 10),
}))"""


def score_headings(headings: list[dict]) -> HeadingResult:
    structure = [Heading(**h) for h in headings]
    issues = []

    h1_count = sum(1 for h in structure if h.level == 1)
    if h1_count == 0:
        issues.append("No H1 tag found")
    elif h1_count > 1:
        issues.append(f"Multiple H1 tags found ({h1_count})")
    if not structure:
        issues.append("No heading tags found")

    # only the first skipped level is reported
    for prev, cur in zip(structure, structure[1:]):
        if cur.level > prev.level + 1:
            issues.append(f"Heading hierarchy skip: {prev.tag} → {cur.tag}")
            break

    return HeadingResult(
        score=max(0, 100 - ISSUE_PENALTY * len(issues)),
        structure=structure,
        h1_count=h1_count,
        issues=issues,
    )


async def check_headings(page: Page) -> HeadingResult:
    return score_headings(await page.evaluate(EXTRACT_HEADINGS_JS))
