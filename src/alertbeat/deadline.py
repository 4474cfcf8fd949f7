"""Nested time budgets for a check cycle and its HTTP calls."""

import time
from typing import Callable, Optional

import requests

Clock = Callable[[], float]


class DeadlineExceeded(requests.Timeout):
    """The deadline passed before the request could finish."""


class Deadline:
    """A point in time after which work must stop.

    A deadline created with a *parent* never outlives it, so a request
    deadline of 30s inside a cycle that has 10s left expires in 10s.

    Usage::

        cycle = Deadline(300)
        request = cycle.child(30)
        request.remaining()   # <= 30
    """

    def __init__(self, seconds: float, parent: Optional["Deadline"] = None,
                 clock: Optional[Clock] = None):
        if clock is None:
            clock = parent.clock if parent is not None else time.monotonic
        self.clock = clock
        self.expires_at = clock() + seconds
        if parent is not None:
            self.expires_at = min(self.expires_at, parent.expires_at)

    def child(self, seconds: float) -> "Deadline":
        """Return a shorter deadline nested inside this one."""
        return Deadline(seconds, parent=self)

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self) -> None:
        """Raise :class:`DeadlineExceeded` if the deadline has passed."""
        if self.expired:
            raise DeadlineExceeded("deadline exceeded")

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s)"
