"""Full check cycles against real local HTTP servers."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from alertbeat.models import Settings, Status
from alertbeat.runner import Runner
from alertbeat.transport import make_session


class StubServer:
    """Tiny HTTP server with canned responses per path, recording every request."""

    def __init__(self):
        self.routes = {}
        self.requests = []
        stub = self

        class Handler(BaseHTTPRequestHandler):
            def _handle(self):
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                stub.requests.append((self.command, self.path, body))
                status, payload, delay, trickle = stub.routes.get(
                    self.path, (404, b"not found", 0, 0))
                if delay:
                    time.sleep(delay)
                try:
                    self.send_response(status)
                    self.send_header("Content-Length", str(len(payload)))
                    self.end_headers()
                    if not trickle:
                        self.wfile.write(payload)
                        return
                    for i in range(len(payload)):
                        self.wfile.write(payload[i:i + 1])
                        self.wfile.flush()
                        time.sleep(trickle)
                except OSError:
                    pass

            do_GET = _handle
            do_POST = _handle

            def log_message(self, format, *args):
                pass

        self.server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.server.daemon_threads = True
        self.server.block_on_close = False
        self.url = f"http://127.0.0.1:{self.server.server_address[1]}"
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def route(self, path, status=200, body=b"", delay=0, trickle=0):
        """Serve *body* at *path*; *trickle* sends it one byte per that many seconds."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[path] = (status, body, delay, trickle)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *exc):
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def prometheus():
    with StubServer() as server:
        yield server


@pytest.fixture
def healthchecks():
    with StubServer() as server:
        server.route("/abc", body="OK")
        server.route("/abc/fail", body="OK")
        yield server


def _runner(prometheus_url, healthchecks, timeout=5.0, interval=10.0):
    session = make_session()
    session.trust_env = False  # no proxies for 127.0.0.1
    return Runner(Settings(
        check_uuid="abc",
        prometheus_url=prometheus_url,
        healthchecks_url=healthchecks.url,
        timeout=timeout,
        interval=interval,
    ), session=session)


class TestEndToEnd:
    def test_no_alerts(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"status":"success","data":{"alerts":[]}}')
        outcome = _runner(prometheus.url, healthchecks).check()

        assert outcome.status == Status.SUCCESS
        assert prometheus.requests == [("GET", "/api/v1/alerts", b"")]
        assert healthchecks.requests == [("GET", "/abc", b"")]

    def test_active_alert(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts",
                         body='{"data":{"alerts":[{"labels":{"alertname":"X"}}]}}')
        _runner(prometheus.url, healthchecks).check()

        assert len(healthchecks.requests) == 1
        method, path, body = healthchecks.requests[0]
        assert (method, path) == ("POST", "/abc/fail")
        assert b"active alerts reported" in body
        assert b'[{"labels":{"alertname":"X"}}]' in body

    def test_prometheus_503(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", status=503, body="overloaded")
        _runner(prometheus.url, healthchecks).check()

        _, path, body = healthchecks.requests[0]
        assert path == "/abc/fail"
        assert b"unexpected response status code" in body
        assert b"503" in body
        assert b"overloaded" in body

    def test_prometheus_unreachable(self, healthchecks):
        outcome = _runner("http://127.0.0.1:1", healthchecks).check()

        assert outcome.message == "failed to execute monitoring request"
        _, path, body = healthchecks.requests[0]
        assert path == "/abc/fail"
        assert body.startswith(b"failed to execute monitoring request error=")

    def test_slow_prometheus_times_out_and_still_reports(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"data":{"alerts":[]}}', delay=2)
        started = time.monotonic()
        outcome = _runner(prometheus.url, healthchecks, timeout=0.5, interval=10).check()

        assert time.monotonic() - started < 2
        assert outcome.message == "failed to execute monitoring request"
        assert [(m, p) for m, p, _ in healthchecks.requests] == [("POST", "/abc/fail")]

    def test_slow_healthchecks_ping_is_dropped(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"data":{"alerts":[]}}')
        healthchecks.route("/abc", body="OK", delay=2)
        started = time.monotonic()
        outcome = _runner(prometheus.url, healthchecks, timeout=0.5, interval=10).check()

        assert time.monotonic() - started < 2
        assert outcome.status == Status.SUCCESS

    def test_trickled_prometheus_body_hits_deadline(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"data":{"alerts":[]}}' + " " * 10,
                         trickle=0.2)
        started = time.monotonic()
        outcome = _runner(prometheus.url, healthchecks, timeout=1.0, interval=30.0).check()

        assert time.monotonic() - started < 2.0
        assert outcome.message == "failed to decode response body"
        assert "deadline exceeded" in outcome.render()
        assert [(m, p) for m, p, _ in healthchecks.requests] == [("POST", "/abc/fail")]

    def test_trickled_error_body_hits_deadline(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", status=503, body="x" * 32, trickle=0.2)
        started = time.monotonic()
        outcome = _runner(prometheus.url, healthchecks, timeout=1.0, interval=30.0).check()

        assert time.monotonic() - started < 2.0
        assert outcome.message == "unexpected response status code"
        assert ("body", "<read-error>") in outcome.context

    def test_trickled_ping_body_is_dropped(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"data":{"alerts":[]}}')
        healthchecks.route("/abc", body="x" * 32, trickle=0.2)
        started = time.monotonic()
        outcome = _runner(prometheus.url, healthchecks, timeout=1.0, interval=30.0).check()

        assert time.monotonic() - started < 2.0
        assert outcome.status == Status.SUCCESS

    def test_healthchecks_error_is_not_fatal(self, prometheus, healthchecks):
        prometheus.route("/api/v1/alerts", body='{"data":{"alerts":[]}}')
        healthchecks.route("/abc", status=500, body="boom")
        outcome = _runner(prometheus.url, healthchecks).check()
        assert outcome.status == Status.SUCCESS
