import pytest

from services.scan_service.analyzers.performance import (
    KB,
    MB,
    breakdown_by_type,
    check_performance,
    format_size,
    metric_rating,
    score_performance,
)
from services.scan_service.browser.session import ResourceSample, classify_content_type


def _res(type_, size, url="https://example.com/r"):
    return ResourceSample(type=type_, size_bytes=size, url=url)


def test_format_size():
    assert format_size(512) == "512B"
    assert format_size(1536) == "1.5KB"
    assert format_size(5 * MB) == "5.0MB"


def test_classify_content_type():
    assert classify_content_type("application/javascript; charset=utf-8") == "js"
    assert classify_content_type("text/css") == "css"
    assert classify_content_type("image/webp") == "image"
    assert classify_content_type("font/woff2") == "font"
    assert classify_content_type("text/html") == "html"
    assert classify_content_type("application/json") == "other"
    assert classify_content_type("") == "other"


def test_lean_fast_page_scores_full():
    result = score_performance([_res("html", 20 * KB), _res("js", 100 * KB)], load_ms=1200, dom_elements=300)
    assert result.score == 100
    assert result.recommendations == []
    assert result.total_page_size == "120.0KB"
    assert result.metrics.load_speed.rating == "AAA"


def test_heavy_page_penalties():
    resources = [_res("image", 300 * KB) for _ in range(10)]
    resources += [_res("js", 70 * KB) for _ in range(21)]
    result = score_performance(resources, load_ms=9000, dom_elements=3500)

    # 3000KB images + 1470KB js ~ 4.37MB
    assert result.metrics.page_weight.score == 100 - 20 - 15
    assert result.metrics.resource_count.score == 100 - 10
    assert result.metrics.dom_complexity.score == 60
    # >2MB (-30), 10 large (-50)
    assert result.metrics.image_optimization.score == 20
    assert result.metrics.image_optimization.rating == "Fail"
    assert result.metrics.load_speed.score == 60

    expected = round(65 * 0.25 + 90 * 0.20 + 60 * 0.15 + 20 * 0.25 + 60 * 0.15)
    assert result.score == expected
    priorities = [r.priority for r in result.recommendations]
    assert priorities[:3] == ["High", "High", "High"]
    assert "Slow page load (9.0s) exceeds 5s threshold" in result.issues


def test_sub_metric_clamped_at_zero():
    resources = [_res("image", 250 * KB) for _ in range(30)]
    result = score_performance(resources, load_ms=100, dom_elements=10)
    assert result.metrics.image_optimization.score == 0


def test_breakdown_preserves_first_seen_order():
    rows = breakdown_by_type([_res("html", 10), _res("js", 20), _res("html", 5)])
    assert [(r.type, r.count, r.size_bytes) for r in rows] == [("html", 2, 15), ("js", 1, 20)]


def test_metric_rating_bands():
    assert [metric_rating(s) for s in (90, 70, 50, 49)] == ["AAA", "AA", "A", "Fail"]


def test_load_speed_key_in_report():
    result = score_performance([], load_ms=4000, dom_elements=100)
    dumped = result.model_dump(by_alias=True)
    assert dumped["metrics"]["loadSpeed"]["score"] == 90
    assert dumped["totalPageSizeBytes"] == 0


@pytest.mark.asyncio
async def test_check_performance_counts_dom(fake_page_cls):
    page = fake_page_cls({"querySelectorAll('*').length": 1600})
    result = await check_performance(page, [_res("html", 1000)], 500)
    assert result.dom_elements == 1600
    assert result.metrics.dom_complexity.score == 80
