"""Free-running fixed-rate ticker for the check loop."""

import threading
import time
from typing import Callable, Iterator, Optional


def ticks(interval: float, stop: Optional[threading.Event] = None,
          clock: Callable[[], float] = time.monotonic) -> Iterator[float]:
    """Yield at ``start + n * interval`` until *stop* is set.

    Tick times are fixed from the start, not from when the consumer is
    done with the previous tick.  If the consumer (or the whole process)
    falls behind by more than one interval, the missed ticks are dropped
    rather than delivered in a burst.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    stop = stop or threading.Event()

    next_tick = clock() + interval
    while not stop.wait(max(0.0, next_tick - clock())):
        yield next_tick
        next_tick += interval
        now = clock()
        if next_tick <= now:
            missed = int((now - next_tick) // interval) + 1
            next_tick += missed * interval


def run_every(interval: float, job: Callable[[], object],
              stop: Optional[threading.Event] = None,
              clock: Callable[[], float] = time.monotonic) -> None:
    """Start *job* on a new daemon thread at each tick.

    A job that runs longer than *interval* does not delay the next tick,
    so jobs may overlap.
    """
    for n, _ in enumerate(ticks(interval, stop, clock), start=1):
        worker = threading.Thread(target=job, name=f"check-{n}", daemon=True)
        worker.start()
