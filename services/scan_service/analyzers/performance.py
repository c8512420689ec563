from collections import OrderedDict
from typing import Iterable

from playwright.async_api import Page

from services.scan_service.browser.session import ResourceSample
from services.scan_service.schemas.report import (
    PerformanceMetric,
    PerformanceMetrics,
    PerformanceResult,
    Recommendation,
    ResourceBreakdown,
)
from services.scan_service.scoring import round_half_up

KB = 1024
MB = 1024 * 1024

SUB_METRIC_WEIGHTS = {
    "page_weight": 0.25,
    "resource_count": 0.20,
    "dom_complexity": 0.15,
    "image_optimization": 0.25,
    "load_speed": 0.15,
}

COUNT_DOM_JS = "() => document.querySelectorAll('*').length"


def format_size(size: int) -> str:
    if size < KB:
        return f"{size}B"
    if size < MB:
        return f"{size / KB:.1f}KB"
    return f"{size / MB:.1f}MB"


def _seconds(ms: int) -> str:
    return f"{ms / 1000:.1f}s"


def metric_rating(score: int) -> str:
    if score >= 90:
        return "AAA"
    if score >= 70:
        return "AA"
    if score >= 50:
        return "A"
    return "Fail"


def _metric(score: int, details: list[str]) -> PerformanceMetric:
    score = max(0, score)
    return PerformanceMetric(score=score, rating=metric_rating(score), details=details)


def _page_weight(total: int, js: int, css: int) -> PerformanceMetric:
    score, details = 100, []
    if total > 5 * MB:
        score -= 40
        details.append(f"⚠ Total page size {format_size(total)} exceeds 5MB, target < 3MB")
    elif total > 3 * MB:
        score -= 20
        details.append(f"Total page size {format_size(total)}, target < 3MB for optimal loading")
    elif total > 1.5 * MB:
        score -= 10
        details.append(f"Page size {format_size(total)}, good but could be optimized")
    else:
        details.append(f"✓ Page size {format_size(total)} (excellent)")

    if js > MB:
        score -= 15
        details.append(f"⚠ JavaScript total {format_size(js)}, consider code splitting (target < 500KB)")
    elif js > 500 * KB:
        score -= 5
        details.append(f"JavaScript {format_size(js)}, consider lazy loading modules")
    else:
        details.append(f"✓ JavaScript {format_size(js)} (within budget)")

    if css > 300 * KB:
        score -= 10
        details.append(f"CSS total {format_size(css)}, consider removing unused CSS")
    else:
        details.append(f"✓ CSS {format_size(css)} (within budget)")
    return _metric(score, details)


def _resource_count(requests: int, js_files: int, css_files: int) -> PerformanceMetric:
    score, details = 100, []
    if requests > 150:
        score -= 35
        details.append(f"⚠ {requests} HTTP requests significantly impact load time (target < 50)")
    elif requests > 80:
        score -= 20
        details.append(f"{requests} HTTP requests, consider bundling (target < 50)")
    elif requests > 50:
        score -= 10
        details.append(f"{requests} requests, slightly above optimal")
    else:
        details.append(f"✓ {requests} requests (optimal)")

    if js_files > 20:
        score -= 10
        details.append(f"{js_files} JS files, bundle to reduce requests")
    if css_files > 10:
        score -= 5
        details.append(f"{css_files} CSS files, consolidate stylesheets")
    return _metric(score, details)


def _dom_complexity(elements: int) -> PerformanceMetric:
    if elements > 3000:
        return _metric(60, [f"⚠ {elements} DOM elements is excessive (target < 1500, causes layout thrashing)"])
    if elements > 1500:
        return _metric(80, [f"{elements} DOM elements, above recommended (target < 1500)"])
    if elements > 800:
        return _metric(95, [f"{elements} DOM elements, moderate"])
    return _metric(100, [f"✓ {elements} DOM elements (lean DOM)"])


def _image_optimization(images: list[ResourceSample], total: int) -> PerformanceMetric:
    if not images:
        return _metric(100, ["✓ No images detected"])

    score, details = 100, []
    image_bytes = sum(r.size_bytes for r in images)
    large = [r for r in images if r.size_bytes > 200 * KB]

    if image_bytes > 2 * MB:
        score -= 30
        details.append(f"⚠ Total image weight {format_size(image_bytes)}, compress images (target < 1MB)")
    elif image_bytes > MB:
        score -= 15
        details.append(f"Image weight {format_size(image_bytes)}, consider next-gen formats (WebP/AVIF)")
    else:
        details.append(f"✓ Image weight {format_size(image_bytes)} (good)")

    if large:
        score -= 5 * len(large)
        details.append(f"{len(large)} image(s) > 200KB, resize and compress")
    else:
        details.append("✓ No oversized images detected")

    ratio = image_bytes / max(total, 1)
    if ratio > 0.7:
        score -= 10
        details.append(f"Images are {round_half_up(ratio * 100)}% of page weight, optimize aggressively")
    return _metric(score, details)


def _load_speed(load_ms: int) -> PerformanceMetric:
    if load_ms > 8000:
        return _metric(60, [f"⚠ Load time {_seconds(load_ms)} is critical (target < 3s)"])
    if load_ms > 5000:
        return _metric(75, [f"Load time {_seconds(load_ms)} is slow (target < 3s)"])
    if load_ms > 3000:
        return _metric(90, [f"Load time {_seconds(load_ms)} needs improvement (target < 3s)"])
    return _metric(100, [f"✓ Load time {_seconds(load_ms)} (fast)"])


def breakdown_by_type(resources: Iterable[ResourceSample]) -> list[ResourceBreakdown]:
    groups: "OrderedDict[str, list[int]]" = OrderedDict()
    for r in resources:
        count_size = groups.setdefault(r.type, [0, 0])
        count_size[0] += 1
        count_size[1] += r.size_bytes
    return [
        ResourceBreakdown(type=t, count=count, size=format_size(size), size_bytes=size)
        for t, (count, size) in groups.items()
    ]


def score_performance(resources: list[ResourceSample], load_ms: int, dom_elements: int) -> PerformanceResult:
    total = sum(r.size_bytes for r in resources)
    requests = len(resources)
    js = [r for r in resources if r.type == "js"]
    css = [r for r in resources if r.type == "css"]
    images = [r for r in resources if r.type == "image"]
    js_bytes = sum(r.size_bytes for r in js)
    css_bytes = sum(r.size_bytes for r in css)
    large_images = sum(1 for r in images if r.size_bytes > 200 * KB)

    metrics = PerformanceMetrics(
        page_weight=_page_weight(total, js_bytes, css_bytes),
        resource_count=_resource_count(requests, len(js), len(css)),
        dom_complexity=_dom_complexity(dom_elements),
        image_optimization=_image_optimization(images, total),
        load_speed=_load_speed(load_ms),
    )
    score = round_half_up(sum(getattr(metrics, name).score * w for name, w in SUB_METRIC_WEIGHTS.items()))

    recommendations = []
    if total > 3 * MB:
        recommendations.append(Recommendation(priority="High", category="Page Weight",
                                              message=f"Reduce total page size from {format_size(total)} to under 3MB. Audit large resources."))
    if js_bytes > 500 * KB:
        recommendations.append(Recommendation(priority="High", category="JavaScript",
                                              message=f"{format_size(js_bytes)} of JS loaded. Use code splitting, tree shaking and lazy imports."))
    if large_images:
        recommendations.append(Recommendation(priority="High", category="Images",
                                              message=f'{large_images} image(s) over 200KB. Use WebP/AVIF, resize to display dimensions and add loading="lazy".'))
    if requests > 80:
        recommendations.append(Recommendation(priority="Medium", category="Requests",
                                              message=f"{requests} HTTP requests. Bundle JS/CSS, use image sprites and inline critical resources."))
    if dom_elements > 1500:
        recommendations.append(Recommendation(priority="Medium", category="DOM",
                                              message=f"{dom_elements} DOM elements. Virtualize long lists, remove hidden elements and simplify layout."))
    if load_ms > 3000:
        recommendations.append(Recommendation(priority="Medium", category="Speed",
                                              message=f"{_seconds(load_ms)} load time. Defer non-critical JS, preload key resources and use a CDN."))
    if len(css) > 5:
        recommendations.append(Recommendation(priority="Low", category="CSS",
                                              message=f"{len(css)} CSS files. Consolidate and remove unused styles."))

    issues = []
    if score < 70:
        issues.append("Overall performance needs significant improvement")
    if load_ms > 5000:
        issues.append(f"Slow page load ({_seconds(load_ms)}) exceeds 5s threshold")
    if total > 5 * MB:
        issues.append(f"Excessive page size ({format_size(total)})")
    if requests > 100:
        issues.append(f"Too many HTTP requests ({requests})")

    return PerformanceResult(
        score=score,
        load_time=load_ms,
        total_resources=requests,
        total_page_size=format_size(total),
        total_page_size_bytes=total,
        dom_elements=dom_elements,
        resource_breakdown=breakdown_by_type(resources),
        metrics=metrics,
        recommendations=recommendations,
        issues=issues,
    )


async def check_performance(page: Page, resources: list[ResourceSample], load_ms: int) -> PerformanceResult:
    dom_elements = await page.evaluate(COUNT_DOM_JS)
    return score_performance(list(resources), load_ms, dom_elements)
