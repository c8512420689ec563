import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from services.scan_service.config import settings


@pytest.fixture(autouse=True)
def _offline_settings(monkeypatch):
    monkeypatch.setattr(settings, "resolve_hostnames", False)
    monkeypatch.setattr(settings, "highlight_settle_s", 0)
    monkeypatch.setattr(settings, "element_settle_s", 0)
    monkeypatch.setattr(settings, "mobile_settle_s", 0)


class FakeElementHandle:
    def __init__(self, index, fail=False):
        self.index = index
        self.fail = fail
        self.disposed = False
        self.evaluated = []

    async def evaluate(self, script, arg=None):
        from playwright.async_api import Error as PlaywrightError

        self.evaluated.append(script)
        if self.fail:
            raise PlaywrightError("element detached")

    async def dispose(self):
        self.disposed = True


class FakePage:
    """Stands in for a Playwright page.

    ``results`` maps a script (or any unique substring of it) to the value
    ``evaluate`` returns; a callable value receives the argument.
    """

    def __init__(self, results=None, handles=None):
        self.results = dict(results or {})
        self.handles = handles or []
        self.evaluate_calls = []
        self.screenshots = []
        self.viewport_size = {"width": 1440, "height": 900}
        self.viewport_history = []

    async def evaluate(self, script, arg=None):
        self.evaluate_calls.append((script, arg))
        for key, value in self.results.items():
            if key in script:
                return value(arg) if callable(value) else value
        return None

    async def screenshot(self, full_page=False, type="jpeg", quality=None):
        self.screenshots.append({"full_page": full_page, "type": type, "quality": quality})
        return b"\xff\xd8jpeg"

    async def query_selector_all(self, selector):
        return self.handles

    async def set_viewport_size(self, size):
        self.viewport_history.append(size)
        self.viewport_size = size


@pytest.fixture
def fake_page_cls():
    return FakePage


@pytest.fixture
def fake_handle_cls():
    return FakeElementHandle
