"""Abstract page automation capability used by the state machine and agent.

The core only talks about named controls (``Control``); which selectors or
markup back a control is decided by the concrete driver.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class Control(str, Enum):
    APPLY_BUTTON = "apply_button"
    COVER_LETTER = "cover_letter"
    HOURLY_RATE = "hourly_rate"
    DURATION = "duration"
    SCREENING_ANSWER = "screening_answer"
    ATTACHMENT = "attachment"
    SUBMIT_BUTTON = "submit_button"
    SUCCESS_INDICATOR = "success_indicator"


class PageContext(ABC):
    """One open page (execution context).

    Methods raise :class:`autosubmit.errors.ContextGone` once the page is
    closed or has crashed.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the document has finished loading."""

    @abstractmethod
    def get_marker(self, name: str) -> str | None:
        """Read a value stored inside the page (survives until navigation)."""

    @abstractmethod
    def set_marker(self, name: str, value: str) -> None:
        pass

    @abstractmethod
    def exists(self, control: Control, timeout: float = 3.0) -> bool:
        """Wait up to ``timeout`` seconds for ``control`` to become visible."""

    @abstractmethod
    def count(self, control: Control) -> int:
        pass

    @abstractmethod
    def fill(self, control: Control, value: str, *, index: int = 0, timeout: float = 3.0) -> bool:
        pass

    @abstractmethod
    def click(self, control: Control, *, timeout: float = 3.0) -> bool:
        pass

    @abstractmethod
    def attach_file(self, control: Control, path: str, *, timeout: float = 3.0) -> bool:
        """Set the file of an upload input. False if the input is missing."""

    @abstractmethod
    def close(self) -> None:
        pass


class PageDriver(ABC):
    @abstractmethod
    def open(self, url: str) -> PageContext:
        """Open ``url`` in a new foreground page and return immediately."""

    def close(self) -> None:
        pass

    def __enter__(self) -> "PageDriver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
