"""Shared HTTP client and deadline-bounded request helpers.

requests only applies its timeout to each socket operation, so a server
that trickles bytes can keep a call alive far past its deadline. Every
blocking step here therefore runs on a worker thread and the caller waits
at most ``deadline.remaining()`` for it.
"""

import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional, Union

import requests

from alertbeat import __version__
from alertbeat.deadline import Deadline, DeadlineExceeded

logger = logging.getLogger("alertbeat")

CHUNK_SIZE = 8192

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="alertbeat-http")


class RequestBuildError(Exception):
    """The request could not be constructed (bad URL, bad method, ...)."""


def make_session() -> requests.Session:
    """Build the one HTTP client the process shares across all calls."""
    session = requests.Session()
    session.headers["User-Agent"] = f"alertbeat/{__version__}"
    return session


def join_url(base: str, *parts: str) -> str:
    """Append path segments to *base* without doubling slashes."""
    url = base.rstrip("/")
    for part in parts:
        part = part.strip("/")
        if part:
            url = f"{url}/{part}"
    return url


def _close_late(future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    close(future.result(), "abandoned")


def abort(response: requests.Response) -> None:
    """Shut down the socket under *response* so a blocked read returns."""
    conn = getattr(response.raw, "_connection", None)
    sock = getattr(conn, "sock", None)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already closed
    close(response, "aborted")


def send(session: requests.Session, method: str, url: str, deadline: Deadline,
         data: Optional[Union[str, bytes]] = None) -> requests.Response:
    """Send a streamed request bounded by *deadline*.

    Raises :class:`RequestBuildError` if the request cannot be prepared and
    ``requests.RequestException`` (including :class:`DeadlineExceeded`) if
    it cannot be executed. The caller owns the returned response and must
    close it.
    """
    try:
        prepared = session.prepare_request(requests.Request(method, url, data=data))
    except (requests.RequestException, ValueError) as e:
        raise RequestBuildError(str(e)) from e

    remaining = deadline.remaining()
    if remaining <= 0:
        raise DeadlineExceeded(f"deadline exceeded before {method} {url}")

    settings = session.merge_environment_settings(prepared.url, {}, True, None, None)
    future = _executor.submit(session.send, prepared, timeout=remaining, **settings)
    try:
        return future.result(timeout=remaining)
    except FutureTimeout:
        # the worker still holds the connection; release it once it returns
        future.add_done_callback(_close_late)
        raise DeadlineExceeded(f"deadline exceeded during {method} {url}") from None


def _consume(response: requests.Response, deadline: Deadline, keep: bool) -> bytes:
    chunks = []
    for chunk in response.iter_content(CHUNK_SIZE):
        if keep:
            chunks.append(chunk)
        deadline.check()
    return b"".join(chunks)


def _bounded(response: requests.Response, deadline: Deadline, keep: bool) -> bytes:
    remaining = deadline.remaining()
    if remaining <= 0:
        raise DeadlineExceeded("deadline exceeded before reading response body")
    future = _executor.submit(_consume, response, deadline, keep)
    try:
        return future.result(timeout=remaining)
    except FutureTimeout:
        abort(response)
        raise DeadlineExceeded("deadline exceeded while reading response body") from None


def read_body(response: requests.Response, deadline: Deadline) -> bytes:
    """Read the whole streamed body, giving up once *deadline* passes."""
    return _bounded(response, deadline, keep=True)


def drain(response: requests.Response, deadline: Deadline) -> None:
    """Read the body to EOF and discard it so the connection can be reused."""
    _bounded(response, deadline, keep=False)


def is_success(response: requests.Response) -> bool:
    return response.status_code // 100 == 2


def status_text(response: requests.Response) -> str:
    """``"503 Service Unavailable"`` style status line."""
    return f"{response.status_code} {response.reason or ''}".strip()


def close(response: requests.Response, what: str) -> None:
    """Close *response*, logging (not raising) any error."""
    try:
        response.close()
    except OSError as e:
        logger.warning("failed to close %s response body", what,
                       extra={"context": [("error", e)]})
