"""Orchestrates the alerts check and the heartbeat pings."""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from alertbeat.deadline import Deadline
from alertbeat.heartbeat import Heartbeat
from alertbeat.models import Outcome, Settings
from alertbeat.prometheus import query_alerts
from alertbeat.scheduler import run_every
from alertbeat.transport import make_session

_log = logging.getLogger("alertbeat")


class Runner:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.session = session or make_session()
        self.clock = clock
        self.heartbeat = Heartbeat(self.session, settings)

    def evaluate(self, deadline: Deadline) -> Outcome:
        """Query Prometheus within a request budget nested in *deadline*."""
        return query_alerts(self.session, self.settings,
                            deadline.child(self.settings.timeout))

    def check(self, ping: bool = True) -> Outcome:
        """Run one check cycle and report its outcome.

        The whole cycle, including the ping, is bounded by ``interval``.
        The ping is sent under the cycle deadline, so it still gets a full
        ``timeout`` even when the Prometheus request used up its own.
        """
        cycle = Deadline(self.settings.interval, clock=self.clock)
        outcome = self.evaluate(cycle)
        if ping:
            self.heartbeat.report(outcome, cycle)
        elif not outcome.ok:
            _log.error(outcome.message, extra={"context": outcome.context})
        return outcome

    def _safe_check(self) -> None:
        try:
            self.check()
        except Exception:
            _log.exception("check cycle crashed")

    def run_forever(self, stop: Optional[threading.Event] = None) -> None:
        """Check now, then every ``interval`` until *stop* is set (never, in production)."""
        self._safe_check()
        run_every(self.settings.interval, self._safe_check, stop, self.clock)
