"""Dead man's switch: report each check outcome to a Healthchecks.io server."""

import logging
from typing import Any, Optional, Tuple

import requests

from alertbeat.deadline import Deadline
from alertbeat.models import Outcome, Settings
from alertbeat.transport import (
    RequestBuildError, close, drain, is_success, join_url, read_body, send,
    status_text,
)

logger = logging.getLogger("alertbeat")


class Heartbeat:
    """Pings ``<healthchecks_url>/<uuid>`` on success and ``.../fail`` on failure.

    * Each ping gets its own ``timeout`` budget, nested in the caller's deadline.
    * Pings are fire-and-forget: every error is logged and swallowed so a
      lost ping never affects the check loop.
    """

    def __init__(self, session: requests.Session, settings: Settings):
        self.session = session
        self.settings = settings

    @property
    def success_url(self) -> str:
        return join_url(self.settings.healthchecks_url, self.settings.check_uuid)

    @property
    def failure_url(self) -> str:
        return join_url(self.settings.healthchecks_url, self.settings.check_uuid, "fail")

    def report(self, outcome: Outcome, deadline: Deadline) -> None:
        """Send the ping matching *outcome*."""
        if outcome.ok:
            self.ping_success(deadline)
        else:
            self.ping_failure(deadline, outcome.message, *outcome.context)

    def ping_success(self, deadline: Deadline) -> None:
        logger.info("success")
        self._ping("success", "GET", self.success_url, deadline)

    def ping_failure(self, deadline: Deadline, message: str,
                     *context: Tuple[str, Any]) -> None:
        logger.error(message, extra={"context": list(context)})
        body = Outcome.failure(message, *context).render()
        self._ping("failure", "POST", self.failure_url, deadline, body.encode("utf-8"))

    def _ping(self, name: str, method: str, url: str, deadline: Deadline,
              data: Optional[bytes] = None) -> None:
        request_deadline = deadline.child(self.settings.timeout)

        try:
            resp = send(self.session, method, url, request_deadline, data=data)
        except RequestBuildError as e:
            logger.error("failed to create ping %s request", name,
                         extra={"context": [("error", e)]})
            return
        except requests.RequestException as e:
            logger.error("failed to execute ping %s request", name,
                         extra={"context": [("error", e)]})
            return

        try:
            if not is_success(resp):
                try:
                    body = read_body(resp, request_deadline).decode("utf-8", "replace")
                except (requests.RequestException, OSError) as e:
                    logger.warning("failed to read ping %s response body", name,
                                   extra={"context": [("error", e)]})
                    body = "<read-error>"
                logger.error(
                    "unexpected response status code for ping %s response", name,
                    extra={"context": [("status", status_text(resp)), ("body", body)]},
                )
                return

            try:
                drain(resp, request_deadline)
            except (requests.RequestException, OSError) as e:
                logger.warning("failed to read ping %s response body to EOF", name,
                               extra={"context": [("error", e)]})
        finally:
            close(resp, f"ping {name}")
