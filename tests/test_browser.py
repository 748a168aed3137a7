"""Tests for the Playwright driver's page lifecycle, using stand-in page objects."""

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from autosubmit.browser import PlaywrightDriver, PlaywrightPage
from autosubmit.errors import ContextGone, PageLoadTimeout


class StubPage:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.goto_calls = []
        self.closed = False

    def set_default_timeout(self, ms):
        pass

    def bring_to_front(self):
        pass

    def goto(self, url, **kwargs):
        self.goto_calls.append((url, kwargs))
        if self.goto_error is not None:
            raise self.goto_error

    def is_closed(self):
        return self.closed

    def close(self):
        self.closed = True


class StubContext:
    def __init__(self, page):
        self.page = page

    def new_page(self):
        return self.page


def _driver(page, **kwargs):
    driver = PlaywrightDriver(**kwargs)
    driver._context = StubContext(page)
    return driver


def test_open_returns_page_and_bounds_navigation_by_timeout():
    page = StubPage()
    context = _driver(page, navigation_timeout=15).open("https://x/jobs/~1")

    assert isinstance(context, PlaywrightPage)
    [(url, kwargs)] = page.goto_calls
    assert url == "https://x/jobs/~1"
    assert kwargs["timeout"] == 15000
    assert not page.closed


def test_navigation_timeout_closes_page():
    page = StubPage(goto_error=PlaywrightTimeoutError("Timeout 15000ms exceeded"))
    with pytest.raises(PageLoadTimeout):
        _driver(page).open("https://x/jobs/~1")
    assert page.closed


def test_navigation_error_closes_page():
    page = StubPage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    with pytest.raises(ContextGone, match="ERR_NAME_NOT_RESOLVED"):
        _driver(page).open("https://x/jobs/~1")
    assert page.closed
