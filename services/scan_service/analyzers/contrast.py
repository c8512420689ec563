"""Visual consistency and WCAG 2.x text contrast.

The page script samples up to ``MAX_SAMPLED_NODES`` elements evenly across the
document and reports computed colors; luminance, ratios and thresholds are
evaluated here so they can be tested without a browser.
"""

from playwright.async_api import Page

from services.scan_service.schemas.report import ContrastFailure, ContrastSummary, VisualResult
from services.scan_service.scoring import round_half_up

MAX_SAMPLED_NODES = 300
MAX_FAILURES = 20
MAX_PALETTE = 20
WHITE = (255, 255, 255)

EXTRACT_VISUAL_JS = """(maxNodes) => {
  const parseRgba = (c) => {
    const m = (c || '').match(/rgba?\\((\\d+),\\s*(\\d+),\\s*(\\d+)(?:,\\s*([\\d.]+))?/);
    return m ? [parseInt(m[1], 10), parseInt(m[2], 10), parseInt(m[3], 10), m[4] === undefined ? 1 : parseFloat(m[4])] : null;
  };
  const elements = document.querySelectorAll('body, body *');
  const step = Math.max(1, Math.floor(elements.length / Math.min(elements.length, maxNodes)));
  const fonts = new Set();
  const fontSizes = new Set();
  const colors = new Set();
  const backgroundColors = new Set();
  const pairs = [];

  for (let i = 0; i < elements.length; i += step) {
    const el = elements[i];
    const style = getComputedStyle(el);
    if (style.fontFamily) fonts.add(style.fontFamily.split(',')[0].trim().replace(/['"]/g, ''));
    if (style.fontSize) fontSizes.add(style.fontSize);
    if (style.color && style.color !== 'rgba(0, 0, 0, 0)') colors.add(style.color);
    if (style.backgroundColor && style.backgroundColor !== 'rgba(0, 0, 0, 0)') backgroundColors.add(style.backgroundColor);

    const text = (el.textContent || '').trim().substring(0, 40);
    const fg = parseRgba(style.color);
    if (!text || !fg) continue;

    let bg = null;
    for (let walker = el; walker; walker = walker.parentElement) {
      const candidate = parseRgba(getComputedStyle(walker).backgroundColor);
      if (candidate && candidate[3] > 0) { bg = candidate; break; }
    }

    pairs.push({
      element: el.tagName.toLowerCase(),
      text,
      fg: style.color,
      fgRgb: fg.slice(0, 3),
      bgRgb: bg ? bg.slice(0, 3) : null,
      fontSize: parseFloat(style.fontSize) || 0,
      isBold: parseInt(style.fontWeight, 10) >= 700 || style.fontWeight === 'bold',
    });
  }

  return {
    fonts: Array.from(fonts),
    fontSizes: Array.from(fontSizes).sort(),
    colors: Array.from(colors),
    backgroundColors: Array.from(backgroundColors),
    pairs,
  };
}"""


def _linear(channel: float) -> float:
    s = channel / 255
    return s / 12.92 if s <= 0.03928 else ((s + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb) -> float:
    r, g, b = rgb
    return 0.2126 * _linear(r) + 0.7152 * _linear(g) + 0.0722 * _linear(b)


def contrast_ratio(fg, bg) -> float:
    l1, l2 = relative_luminance(fg), relative_luminance(bg)
    lighter, darker = max(l1, l2), min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def is_large_text(font_size: float, is_bold: bool) -> bool:
    return font_size >= 18 or (is_bold and font_size >= 14)


def required_ratios(font_size: float, is_bold: bool) -> tuple[float, float]:
    """(AA, AAA) minimum ratios for the given text size."""
    if is_large_text(font_size, is_bold):
        return 3.0, 4.5
    return 4.5, 7.0


def contrast_rating(score: int) -> str:
    if score >= 95:
        return "AAA"
    if score >= 80:
        return "AA"
    if score >= 60:
        return "A"
    return "Fail"


def evaluate_contrast(pairs: list[dict]) -> ContrastSummary:
    pass_aa = fail_aa = pass_aaa = fail_aaa = 0
    failures = []

    for pair in pairs:
        bg = tuple(pair.get("bgRgb") or WHITE)
        ratio = contrast_ratio(pair["fgRgb"], bg)
        need_aa, need_aaa = required_ratios(pair.get("fontSize", 0), pair.get("isBold", False))

        if ratio >= need_aa:
            pass_aa += 1
        else:
            fail_aa += 1
            if len(failures) < MAX_FAILURES:
                failures.append(ContrastFailure(
                    element=pair["element"],
                    text=pair["text"],
                    fg=pair["fg"],
                    bg=f"rgb({bg[0]},{bg[1]},{bg[2]})",
                    ratio=round_half_up(ratio * 100) / 100,
                    required=need_aa,
                ))
        if ratio >= need_aaa:
            pass_aaa += 1
        else:
            fail_aaa += 1

    checked = pass_aa + fail_aa
    score = round_half_up(pass_aa / checked * 100) if checked else 100
    return ContrastSummary(
        score=score,
        rating=contrast_rating(score),
        total_checked=checked,
        pass_aa=pass_aa,
        fail_aa=fail_aa,
        pass_aaa=pass_aaa,
        fail_aaa=fail_aaa,
        failures=failures,
    )


def score_visual(data: dict) -> VisualResult:
    contrast = evaluate_contrast(data.get("pairs", []))

    issues = []
    if contrast.score < 80:
        issues.append(f"WCAG contrast issues: {contrast.fail_aa} element(s) fail AA requirements (4.5:1)")
    if contrast.fail_aaa:
        issues.append(f"{contrast.fail_aaa} element(s) fail stricter AAA requirements (7:1)")

    return VisualResult(
        score=contrast.score,
        contrast=contrast,
        fonts=data.get("fonts", []),
        font_sizes=data.get("fontSizes", []),
        colors=data.get("colors", [])[:MAX_PALETTE],
        background_colors=data.get("backgroundColors", [])[:MAX_PALETTE],
        issues=issues,
    )


async def check_visual(page: Page) -> VisualResult:
    return score_visual(await page.evaluate(EXTRACT_VISUAL_JS, MAX_SAMPLED_NODES))
