"""Shared fixtures for alertbeat tests."""

import io
from dataclasses import dataclass
from http import HTTPStatus
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import requests

from alertbeat.models import Settings


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TrackingBody(io.BytesIO):
    """Response body that remembers how many bytes were read from it."""

    def __init__(self, data: bytes = b"", fail_read: Optional[Exception] = None):
        super().__init__(data)
        self.bytes_read = 0
        self.fail_read = fail_read

    def read(self, size=-1):
        if self.fail_read is not None:
            raise self.fail_read
        chunk = super().read(size)
        self.bytes_read += len(chunk)
        return chunk


@dataclass
class Route:
    status: int = 200
    body: bytes = b""
    exc: Optional[Exception] = None
    before: Optional[Callable[[], None]] = None
    fail_read: Optional[Exception] = None


@dataclass
class Call:
    method: str
    url: str
    body: Optional[bytes]
    timeout: float


class FakeHttp:
    """Stands in for the network behind a real ``requests.Session``.

    ``session.send`` is replaced, so request preparation (URL validation,
    headers) still runs through requests itself.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[Call] = []
        self.responses: List[requests.Response] = []
        self.session = requests.Session()
        self.session.send = self.send

    def add(self, method: str, url: str, status: int = 200, body=b"", **kwargs) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[(method, url)] = Route(status=status, body=body, **kwargs)

    def send(self, prepared, **kwargs):
        body = prepared.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.calls.append(Call(prepared.method, prepared.url, body, kwargs.get("timeout")))

        route = self.routes.get((prepared.method, prepared.url))
        if route is None:
            raise requests.ConnectionError(f"no route for {prepared.method} {prepared.url}")
        if route.before is not None:
            route.before()
        if route.exc is not None:
            raise route.exc

        resp = requests.Response()
        resp.status_code = route.status
        try:
            resp.reason = HTTPStatus(route.status).phrase
        except ValueError:
            resp.reason = ""
        resp.raw = TrackingBody(route.body, route.fail_read)
        resp.url = prepared.url
        resp.request = prepared
        self.responses.append(resp)
        return resp

    def called(self, method: str, url: str) -> List[Call]:
        return [c for c in self.calls if c.method == method and c.url == url]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def settings():
    return Settings(
        check_uuid="abc",
        prometheus_url="http://prom:9090",
        healthchecks_url="https://hc-ping.com",
        timeout=30.0,
        interval=300.0,
    )
