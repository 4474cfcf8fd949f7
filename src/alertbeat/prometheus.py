"""Query a Prometheus server for active alerts."""

import json
import logging
from typing import Any, List

import requests

from alertbeat.deadline import Deadline
from alertbeat.models import Outcome, Settings
from alertbeat.transport import (
    RequestBuildError, close, is_success, join_url, read_body, send, status_text,
)

logger = logging.getLogger("alertbeat")

ALERTS_PATH = "api/v1/alerts"


class DecodeError(ValueError):
    """The alerts response did not have the ``{"data": {"alerts": [...]}}`` shape."""


def alerts_url(settings: Settings) -> str:
    return join_url(settings.prometheus_url, ALERTS_PATH)


def decode_alerts(body: bytes) -> List[Any]:
    """Extract ``data.alerts`` from an alerts API response body."""
    try:
        doc = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(str(e)) from e

    if not isinstance(doc, dict):
        raise DecodeError(f"expected a JSON object, got {type(doc).__name__}")
    data = doc.get("data")
    if not isinstance(data, dict):
        raise DecodeError("missing 'data' object")
    alerts = data.get("alerts")
    if not isinstance(alerts, list):
        raise DecodeError("missing 'data.alerts' array")
    return alerts


def serialize_alerts(alerts: List[Any]) -> str:
    """Compact JSON of *alerts*, or ``<marshal-error>`` if that fails."""
    try:
        return json.dumps(alerts, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        logger.warning("failed to marshal prometheus alerts",
                       extra={"context": [("error", e)]})
        return "<marshal-error>"


def query_alerts(session: requests.Session, settings: Settings,
                 deadline: Deadline) -> Outcome:
    """GET the active alerts under *deadline* and classify the result.

    Never raises: every error becomes a failure :class:`Outcome`.
    """
    url = alerts_url(settings)

    try:
        resp = send(session, "GET", url, deadline)
    except RequestBuildError as e:
        return Outcome.failure("failed to create monitoring request", ("error", e))
    except requests.RequestException as e:
        return Outcome.failure("failed to execute monitoring request", ("error", e))

    try:
        if not is_success(resp):
            try:
                body = read_body(resp, deadline).decode("utf-8", "replace")
            except (requests.RequestException, OSError) as e:
                logger.warning("failed to read prometheus response body",
                               extra={"context": [("error", e)]})
                body = "<read-error>"
            return Outcome.failure(
                "unexpected response status code",
                ("status", status_text(resp)),
                ("body", body),
            )

        try:
            alerts = decode_alerts(read_body(resp, deadline))
        except (DecodeError, requests.RequestException, OSError) as e:
            return Outcome.failure("failed to decode response body", ("error", e))
    finally:
        close(resp, "prometheus")

    if alerts:
        return Outcome.failure("active alerts reported",
                               ("alerts", serialize_alerts(alerts)))

    return Outcome.success()
