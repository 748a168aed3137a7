"""Poll-until-predicate-or-deadline utility shared by every wait point."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

T = TypeVar("T")


@dataclass
class Deadline:
    """A point in monotonic time after which a wait gives up."""

    timeout: float
    clock: Callable[[], float] = time.monotonic
    started: float = field(init=False)

    def __post_init__(self) -> None:
        self.started = self.clock()

    @property
    def remaining(self) -> float:
        return max(0.0, self.started + self.timeout - self.clock())

    @property
    def expired(self) -> bool:
        return self.clock() - self.started >= self.timeout


def wait_until(
    predicate: Callable[[], T],
    *,
    timeout: float,
    interval: float = 0.5,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """Call ``predicate`` every ``interval`` seconds until it returns a truthy
    value (returned) or ``timeout`` elapses (``None``).

    Exceptions raised by ``predicate`` propagate immediately.
    """
    deadline = Deadline(timeout, clock=clock)
    while True:
        result = predicate()
        if result:
            return result
        if deadline.expired:
            return None
        sleep(min(interval, deadline.remaining) or interval)
