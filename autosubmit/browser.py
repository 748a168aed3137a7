"""
Playwright-backed page driver.
Each job gets its own page in one shared browser context; named controls are
resolved through an ordered selector list, first visible match wins.
"""
from __future__ import annotations

import os
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from autosubmit.driver import Control, PageContext, PageDriver
from autosubmit.errors import ContextGone, PageLoadTimeout
from autosubmit.log import get_logger

log = get_logger(__name__)

SELECTORS: dict[Control, list[str]] = {
    Control.APPLY_BUTTON: [
        'button[data-test="apply-button"]',
        'a[data-test="apply-button"]',
        'a[href*="/proposals/"]',
        'button:has-text("Apply now")',
        'a:has-text("Apply now")',
        'button:has-text("Submit a proposal")',
    ],
    Control.COVER_LETTER: [
        'textarea[name="coverLetter"]',
        'textarea[data-test="cover-letter"]',
        "textarea#cover-letter",
        'textarea[placeholder*="cover" i]',
        'textarea[placeholder*="proposal" i]',
        "textarea.air3-textarea",
    ],
    Control.HOURLY_RATE: [
        'input[name="hourlyRate"]',
        'input[data-test="hourly-rate"]',
        'input[placeholder*="$/hr"]',
        'input[placeholder*="rate" i]',
    ],
    Control.DURATION: [
        'input[name="estimatedDuration"]',
        'input[data-test="duration"]',
        'input[placeholder*="hours" i]',
    ],
    Control.SCREENING_ANSWER: [
        'textarea[name*="question" i]',
        'textarea[data-test*="question"]',
        ".fe-proj-job-questions textarea",
    ],
    Control.ATTACHMENT: [
        'input[type="file"][name*="attachment" i]',
        '.fe-proposal-attachments input[type="file"]',
        'input[type="file"]',
    ],
    Control.SUBMIT_BUTTON: [
        'button[data-test="submit-proposal"]',
        'button:has-text("Send for")',
        'button:has-text("Submit proposal")',
        'button[type="submit"]',
    ],
    Control.SUCCESS_INDICATOR: [
        '[data-test="success"]',
        ".success",
        ':text("Your proposal was submitted")',
    ],
}

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class PlaywrightPage(PageContext):
    def __init__(self, page) -> None:
        self.page = page

    def _alive(self):
        if self.page.is_closed():
            raise ContextGone("page was closed")
        return self.page

    @property
    def url(self) -> str:
        return self._alive().url

    def is_ready(self) -> bool:
        page = self._alive()
        try:
            return page.evaluate("document.readyState") == "complete"
        except PlaywrightError:
            # execution context replaced mid-navigation
            return False

    def get_marker(self, name: str) -> str | None:
        page = self._alive()
        try:
            return page.evaluate("name => window[name] || null", name)
        except PlaywrightError as e:
            log.debug("Marker read failed: %s", str(e)[:80])
            return None

    def set_marker(self, name: str, value: str) -> None:
        page = self._alive()
        try:
            page.evaluate("([name, value]) => { window[name] = value; }", [name, value])
        except PlaywrightError as e:
            raise ContextGone(str(e)[:150].split("\n")[0]) from e

    def _first_visible(self, control: Control, timeout: float):
        """Locator of the first selector that becomes visible within ``timeout``."""
        page = self._alive()
        selectors = SELECTORS[control]
        per_selector = max(int(timeout * 1000 / len(selectors)), 250)
        for sel in selectors:
            loc = page.locator(sel)
            try:
                loc.first.wait_for(state="visible", timeout=per_selector)
                return loc
            except PlaywrightError:
                continue
        return None

    def exists(self, control: Control, timeout: float = 3.0) -> bool:
        return self._first_visible(control, timeout) is not None

    def count(self, control: Control) -> int:
        page = self._alive()
        for sel in SELECTORS[control]:
            try:
                n = page.locator(sel).count()
            except PlaywrightError:
                continue
            if n:
                return n
        return 0

    def fill(self, control: Control, value: str, *, index: int = 0, timeout: float = 3.0) -> bool:
        loc = self._first_visible(control, timeout)
        if loc is None:
            return False
        try:
            target = loc.nth(index)
            target.scroll_into_view_if_needed()
            target.fill(value)
            return True
        except PlaywrightError as e:
            log.debug("Fill %s failed: %s", control.value, str(e)[:80])
            return False

    def click(self, control: Control, *, timeout: float = 3.0) -> bool:
        loc = self._first_visible(control, timeout)
        if loc is None:
            return False
        try:
            loc.first.scroll_into_view_if_needed()
            loc.first.click()
            return True
        except PlaywrightError as e:
            log.debug("Click %s failed: %s", control.value, str(e)[:80])
            return False

    def attach_file(self, control: Control, path: str, *, timeout: float = 3.0) -> bool:
        # upload inputs are usually hidden; being attached is enough
        page = self._alive()
        for sel in SELECTORS[control]:
            loc = page.locator(sel)
            try:
                if not loc.count():
                    continue
                loc.first.set_input_files(path, timeout=int(timeout * 1000))
                return True
            except PlaywrightError as e:
                log.debug("Attach %s via %s failed: %s", control.value, sel, str(e)[:80])
        return False

    def close(self) -> None:
        if not self.page.is_closed():
            self.page.close()


class PlaywrightDriver(PageDriver):
    def __init__(
        self,
        *,
        headless: bool = False,
        user_data_dir: str | Path | None = None,
        navigation_timeout: float = 15.0,
    ) -> None:
        self.headless = headless
        self.user_data_dir = user_data_dir
        self.navigation_timeout = navigation_timeout
        self._pw = None
        self._browser = None
        self._context = None

    def start(self) -> "PlaywrightDriver":
        _pw = os.environ.get("PLAYWRIGHT_BROWSERS_PATH", "")
        if _pw and not Path(_pw).exists():
            os.environ.pop("PLAYWRIGHT_BROWSERS_PATH", None)

        self._pw = sync_playwright().start()
        if self.user_data_dir:
            # persistent profile keeps the site login between runs
            self._context = self._pw.chromium.launch_persistent_context(
                str(self.user_data_dir),
                headless=self.headless,
                viewport={"width": 1280, "height": 900},
                user_agent=_USER_AGENT,
            )
        else:
            self._browser = self._pw.chromium.launch(headless=self.headless)
            self._context = self._browser.new_context(
                viewport={"width": 1280, "height": 900},
                user_agent=_USER_AGENT,
            )
        log.info("Browser started (headless=%s)", self.headless)
        return self

    def __enter__(self) -> "PlaywrightDriver":
        return self.start()

    def open(self, url: str) -> PageContext:
        if self._context is None:
            self.start()
        page = self._context.new_page()
        page.set_default_timeout(20_000)
        try:
            page.bring_to_front()
            page.goto(url, wait_until="commit", timeout=int(self.navigation_timeout * 1000))
        except PlaywrightTimeoutError as e:
            _discard(page)
            raise PageLoadTimeout(f"Navigation to {url} timed out after {self.navigation_timeout:.0f}s") from e
        except PlaywrightError as e:
            _discard(page)
            err = str(e)[:150].split("\n")[0]
            raise ContextGone(f"Navigation to {url} failed: {err}") from e
        return PlaywrightPage(page)

    def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except PlaywrightError as e:
                log.debug("Browser close failed: %s", str(e)[:80])
        if self._pw is not None:
            self._pw.stop()
        self._pw = self._browser = self._context = None


def _discard(page) -> None:
    try:
        page.close()
    except PlaywrightError as e:
        log.debug("Page close failed: %s", str(e)[:80])
