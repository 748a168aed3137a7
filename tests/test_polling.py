"""Tests for the poll-until utility."""

import pytest

from autosubmit.polling import Deadline, wait_until


def test_returns_first_truthy_value(clock):
    values = iter([None, 0, "ready"])
    result = wait_until(lambda: next(values), timeout=10, interval=0.5,
                        clock=clock.monotonic, sleep=clock.sleep)
    assert result == "ready"
    assert clock.sleeps == [0.5, 0.5]


def test_gives_up_at_deadline(clock):
    result = wait_until(lambda: False, timeout=2, interval=0.5,
                        clock=clock.monotonic, sleep=clock.sleep)
    assert result is None
    assert clock.now == pytest.approx(2.0)


def test_predicate_errors_propagate(clock):
    def boom():
        raise RuntimeError("gone")

    with pytest.raises(RuntimeError):
        wait_until(boom, timeout=5, clock=clock.monotonic, sleep=clock.sleep)


def test_deadline_remaining(clock):
    d = Deadline(3, clock=clock.monotonic)
    clock.sleep(1)
    assert d.remaining == pytest.approx(2)
    assert not d.expired
    clock.sleep(2)
    assert d.expired
