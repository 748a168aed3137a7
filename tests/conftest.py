"""Shared pytest fixtures: in-memory store, fake clock, fake pages."""

import os
import sys
from pathlib import Path

os.environ.setdefault("AUTOSUBMIT_FILE_LOG", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from autosubmit.config import Settings, Timing
from autosubmit.driver import Control, PageContext, PageDriver
from autosubmit.errors import ContextGone
from autosubmit.matcher import ProposalMatcher
from autosubmit.proposals import ProposalStore
from autosubmit.store import MemoryStore
from autosubmit.submission_queue import SubmissionQueue


class FakeClock:
    """Monotonic clock whose sleep just advances time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakePage(PageContext):
    def __init__(self, url, *, ready_at=0.0, clock=None, controls=None, gone_at=None):
        self._url = url
        self.ready_at = ready_at
        self.gone_at = gone_at
        self.clock = clock or FakeClock()
        self.markers = {}
        self.controls = dict(controls or {})
        self.filled = []
        self.clicked = []
        self.attached = []
        self.closed = False

    def _check(self):
        if self.closed or (self.gone_at is not None and self.clock.now >= self.gone_at):
            raise ContextGone("page crashed")

    @property
    def url(self):
        self._check()
        return self._url

    def is_ready(self):
        self._check()
        return self.clock.now >= self.ready_at

    def get_marker(self, name):
        self._check()
        return self.markers.get(name)

    def set_marker(self, name, value):
        self._check()
        self.markers[name] = value

    def exists(self, control, timeout=3.0):
        self._check()
        return self.controls.get(control, 0) > 0

    def count(self, control):
        self._check()
        return self.controls.get(control, 0)

    def fill(self, control, value, *, index=0, timeout=3.0):
        if not self.exists(control):
            return False
        self.filled.append((control, value, index))
        return True

    def click(self, control, *, timeout=3.0):
        if not self.exists(control):
            return False
        self.clicked.append(control)
        if control is Control.APPLY_BUTTON:
            self._url = self._url.replace("/jobs/", "/proposals/job/")
        return True

    def attach_file(self, control, path, *, timeout=3.0):
        if not self.exists(control):
            return False
        self.attached.append(path)
        return True

    def close(self):
        self.closed = True


FULL_FORM = {
    Control.APPLY_BUTTON: 1,
    Control.COVER_LETTER: 1,
    Control.HOURLY_RATE: 1,
    Control.SUBMIT_BUTTON: 1,
}


class FakeDriver(PageDriver):
    def __init__(self, clock, **page_kwargs):
        self.clock = clock
        self.page_kwargs = page_kwargs
        self.opened = []
        self.pages = []

    def open(self, url):
        self.opened.append(url)
        kwargs = {"controls": FULL_FORM, **self.page_kwargs}
        page = FakePage(url, clock=self.clock, **kwargs)
        self.pages.append(page)
        return page


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def proposals(store):
    return ProposalStore(store)


@pytest.fixture
def queue(store):
    return SubmissionQueue(store)


@pytest.fixture
def matcher(proposals):
    return ProposalMatcher(proposals)


@pytest.fixture
def timing():
    return Timing()


@pytest.fixture
def settings():
    return Settings()
