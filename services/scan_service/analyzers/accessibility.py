from dataclasses import dataclass

from playwright.async_api import Page

from services.scan_service.browser.highlight import (
    PREDICATES_JS,
    capture_element_screenshots,
    capture_highlighted,
)
from services.scan_service.schemas.report import (
    AccessibilityDetails,
    AccessibilityResult,
    ButtonWithoutLabel,
    ImageWithoutAlt,
    InputWithoutLabel,
    LinkWithoutText,
    Screenshot,
)

CATEGORY_PENALTY = 20


@dataclass(frozen=True)
class Category:
    key: str
    selector: str
    predicate: str
    color: str
    issue: str


CATEGORIES = (
    Category("imagesNoAlt", "img", "missingAlt", "#f97316", "{n} image(s) without alt text"),
    Category("linksNoText", "a", "linkWithoutText", "#a855f7", "{n} link(s) without descriptive text"),
    Category("buttonsNoLabel", "button, [role='button']", "buttonWithoutText", "#eab308", "{n} button(s) without labels"),
    Category("inputsNoLabel", "input, select, textarea", "inputWithoutLabel", "#ec4899", "{n} form input(s) without labels"),
)

EXTRACT_A11Y_JS = "(categories) => {" + PREDICATES_JS + """
  const pick = (selector, predicate) => Array.from(document.querySelectorAll(selector)).filter(PREDICATES[predicate]);
  const [imgs, links, buttons, inputs] = categories.map(([selector, predicate]) => pick(selector, predicate));
  return {
    ariaUsage: document.querySelectorAll('[aria-label], [aria-labelledby], [aria-describedby], [role]').length,
    imagesNoAlt: imgs.map((i) => ({
      src: (i.src || i.getAttribute('data-src') || '').substring(0, 200), width: i.width, height: i.height,
    })),
    linksNoText: links.map((l) => ({ href: (l.href || '').substring(0, 200), html: l.outerHTML.substring(0, 150) })),
    buttonsNoLabel: buttons.map((b) => ({ tag: b.tagName.toLowerCase(), html: b.outerHTML.substring(0, 150) })),
    inputsNoLabel: inputs.map((inp) => ({
      tag: inp.tagName.toLowerCase(),
      type: inp.getAttribute('type') || 'text',
      name: inp.getAttribute('name') || '',
      id: inp.getAttribute('id') || '',
    })),
  };
}"""


def score_accessibility(data: dict) -> AccessibilityResult:
    details = AccessibilityDetails(
        images_no_alt=[ImageWithoutAlt(**i) for i in data.get("imagesNoAlt", [])],
        links_no_text=[LinkWithoutText(**l) for l in data.get("linksNoText", [])],
        buttons_no_label=[ButtonWithoutLabel(**b) for b in data.get("buttonsNoLabel", [])],
        inputs_no_label=[InputWithoutLabel(**i) for i in data.get("inputsNoLabel", [])],
    )
    counts = {
        "imagesNoAlt": len(details.images_no_alt),
        "linksNoText": len(details.links_no_text),
        "buttonsNoLabel": len(details.buttons_no_label),
        "inputsNoLabel": len(details.inputs_no_label),
    }
    issues = [c.issue.format(n=counts[c.key]) for c in CATEGORIES if counts[c.key]]

    return AccessibilityResult(
        score=max(0, 100 - CATEGORY_PENALTY * len(issues)),
        images_without_alt=counts["imagesNoAlt"],
        links_without_text=counts["linksNoText"],
        buttons_without_labels=counts["buttonsNoLabel"],
        inputs_without_labels=counts["inputsNoLabel"],
        aria_usage=data.get("ariaUsage", 0),
        details=details,
        issues=issues,
    )


def _items_for(details: AccessibilityDetails, key: str) -> list:
    return {
        "imagesNoAlt": details.images_no_alt,
        "linksNoText": details.links_no_text,
        "buttonsNoLabel": details.buttons_no_label,
        "inputsNoLabel": details.inputs_no_label,
    }[key]


async def check_accessibility(page: Page) -> AccessibilityResult:
    data = await page.evaluate(EXTRACT_A11Y_JS, [[c.selector, c.predicate] for c in CATEGORIES])
    result = score_accessibility(data)

    for category in CATEGORIES:
        items = _items_for(result.details, category.key)
        if not items:
            continue
        shots = await capture_element_screenshots(page, category.selector, category.predicate, category.color)
        for item, shot in zip(items, shots):
            item.screenshot = shot

    for category in CATEGORIES:
        items = _items_for(result.details, category.key)
        if not items:
            continue
        shot = await capture_highlighted(page, category.selector, category.predicate, category.color)
        result.details.category_screenshots[category.key] = shot
        if shot:
            result.screenshots.append(Screenshot(label=category.issue.format(n=len(items)), image=shot))

    return result
