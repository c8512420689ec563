import pytest
from playwright.async_api import Error as PlaywrightError

from services.scan_service.browser.highlight import (
    PREDICATE_NAMES,
    PREDICATES_JS,
    _CLEAR_MARKS_JS,
    _MARK_MATCHES_JS,
    capture_element_screenshots,
    capture_highlighted,
)


def test_every_predicate_is_defined_in_page_table():
    for name in PREDICATE_NAMES:
        assert f"{name}:" in PREDICATES_JS


@pytest.mark.asyncio
async def test_nothing_matched_returns_none_without_screenshot(fake_page_cls):
    page = fake_page_cls({"data-scan-badge": lambda arg: 0})
    assert await capture_highlighted(page, "img", "missingAlt", "#f97316") is None
    assert page.screenshots == []


@pytest.mark.asyncio
async def test_highlight_screenshot_then_cleanup(fake_page_cls):
    page = fake_page_cls({"data-scan-badge": lambda arg: 3})
    shot = await capture_highlighted(page, "img", "missingAlt", "#f97316")

    assert shot.startswith("data:image/jpeg;base64,")
    scripts = [script for script, _ in page.evaluate_calls]
    assert scripts == [_MARK_MATCHES_JS, _CLEAR_MARKS_JS]
    assert page.evaluate_calls[0][1] == ["img", "missingAlt", "#f97316"]
    assert page.screenshots[0]["quality"] == 70


@pytest.mark.asyncio
async def test_unknown_predicate_is_rejected(fake_page_cls):
    page = fake_page_cls()
    with pytest.raises(ValueError):
        await capture_highlighted(page, "img", "alert(document.cookie)", "#000")
    with pytest.raises(ValueError):
        await capture_element_screenshots(page, "img", "nope", "#000")
    assert page.evaluate_calls == []


@pytest.mark.asyncio
async def test_element_screenshots_align_with_matches(fake_page_cls, fake_handle_cls):
    handles = [fake_handle_cls(0), fake_handle_cls(1, fail=True), fake_handle_cls(2), fake_handle_cls(3)]
    page = fake_page_cls({"result.push(idx)": [0, 1, 3]}, handles=handles)

    shots = await capture_element_screenshots(page, "img", "missingAlt", "#f97316")

    assert len(shots) == 3
    assert shots[0].startswith("data:image/jpeg")
    assert shots[1] is None
    assert shots[2].startswith("data:image/jpeg")
    assert handles[2].evaluated == []
    assert all(h.disposed for h in handles)
    assert {s["quality"] for s in page.screenshots} == {65}


@pytest.mark.asyncio
async def test_element_screenshots_pad_past_limit(fake_page_cls, fake_handle_cls):
    handles = [fake_handle_cls(i) for i in range(5)]
    page = fake_page_cls({"result.push(idx)": [0, 1, 2, 3, 4]}, handles=handles)

    shots = await capture_element_screenshots(page, "a", "linkWithoutText", "#a855f7", limit=2)

    assert len(shots) == 5
    assert shots[2:] == [None, None, None]
    assert len(page.screenshots) == 2


@pytest.mark.asyncio
async def test_marks_cleared_when_marking_fails(fake_page_cls):
    def mark_or_clear(arg):
        if arg is not None:
            raise PlaywrightError("execution context was destroyed")

    page = fake_page_cls({"data-scan-badge": mark_or_clear})
    with pytest.raises(PlaywrightError):
        await capture_highlighted(page, "img", "missingAlt", "#f97316")

    assert [script for script, _ in page.evaluate_calls] == [_MARK_MATCHES_JS, _CLEAR_MARKS_JS]
    assert page.screenshots == []
