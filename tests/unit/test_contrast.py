import pytest

from services.scan_service.analyzers.contrast import (
    check_visual,
    contrast_ratio,
    contrast_rating,
    evaluate_contrast,
    required_ratios,
    score_visual,
)


def _pair(fg, bg, size=16.0, bold=False, text="Hello"):
    return {
        "element": "p",
        "text": text,
        "fg": f"rgb({fg[0]}, {fg[1]}, {fg[2]})",
        "fgRgb": list(fg),
        "bgRgb": list(bg) if bg is not None else None,
        "fontSize": size,
        "isBold": bold,
    }


def test_black_on_white_is_maximum_contrast():
    assert contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0)
    assert contrast_ratio((255, 255, 255), (0, 0, 0)) == pytest.approx(21.0)


def test_black_on_white_passes_aa_and_aaa():
    summary = evaluate_contrast([_pair((0, 0, 0), (255, 255, 255))])
    assert summary.pass_aa == 1
    assert summary.pass_aaa == 1
    assert summary.score == 100
    assert summary.rating == "AAA"


def test_light_gray_on_white_fails_aa():
    summary = evaluate_contrast([_pair((204, 204, 204), (255, 255, 255))])
    assert summary.fail_aa == 1
    assert summary.fail_aaa == 1
    assert summary.score == 0
    assert summary.rating == "Fail"
    failure = summary.failures[0]
    assert failure.required == 4.5
    assert failure.ratio == pytest.approx(1.61, abs=0.01)
    assert failure.bg == "rgb(255,255,255)"


def test_missing_background_falls_back_to_white():
    summary = evaluate_contrast([_pair((204, 204, 204), None)])
    assert summary.failures[0].bg == "rgb(255,255,255)"


def test_large_text_thresholds():
    assert required_ratios(18, False) == (3.0, 4.5)
    assert required_ratios(14, True) == (3.0, 4.5)
    assert required_ratios(14, False) == (4.5, 7.0)
    # #767676 on white is about 4.54:1
    summary = evaluate_contrast([_pair((118, 118, 118), (255, 255, 255), size=24)])
    assert summary.pass_aa == 1
    assert summary.pass_aaa == 1


def test_nothing_checked_scores_full():
    summary = evaluate_contrast([])
    assert summary.score == 100
    assert summary.total_checked == 0


def test_failures_are_capped():
    summary = evaluate_contrast([_pair((250, 250, 250), (255, 255, 255)) for _ in range(30)])
    assert summary.fail_aa == 30
    assert len(summary.failures) == 20


def test_rating_bands():
    assert contrast_rating(95) == "AAA"
    assert contrast_rating(80) == "AA"
    assert contrast_rating(60) == "A"
    assert contrast_rating(59) == "Fail"


def test_score_visual_issues_and_palette_cap():
    pairs = [_pair((0, 0, 0), (255, 255, 255))] * 3 + [_pair((204, 204, 204), (255, 255, 255))]
    data = {"pairs": pairs, "fonts": ["Inter"], "fontSizes": ["16px"], "colors": [f"c{i}" for i in range(25)]}
    result = score_visual(data)

    assert result.score == 75
    assert result.contrast.rating == "A"
    assert len(result.colors) == 20
    assert result.issues[0].startswith("WCAG contrast issues")
    assert result.model_dump(by_alias=True)["contrast"]["passAA"] == 3


@pytest.mark.asyncio
async def test_check_visual_passes_node_cap(fake_page_cls):
    page = fake_page_cls({"parseRgba": {"pairs": []}})
    result = await check_visual(page)
    assert result.score == 100
    assert page.evaluate_calls[0][1] == 300
