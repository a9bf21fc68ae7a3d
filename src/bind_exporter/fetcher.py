"""HTTP acquisition for the BIND statistics channel.

Brief:
  A Fetcher owns one requests.Session that is reused across scrape cycles so
  connections to the statistics channel can be pooled. Every request is a
  single attempt (no urllib3 retries) bounded by one deadline that covers
  connecting and reading the whole body.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Timeout

from .errors import TransportError

logger = logging.getLogger(__name__)

V3_PREFIX = "xml/v3/"
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class HttpResult:
    """Status line and body of one completed GET."""

    status_code: int
    reason: str
    body: bytes


def v3_uri(base_uri: str, path: str) -> str:
    """Brief: Join a base URI and a Gen3 statistics path.

    Inputs:
      - base_uri: Statistics channel base, with or without a trailing slash.
      - path: Group or endpoint name, e.g. ``server`` or ``status``.

    Outputs:
      - str: ``base_uri + "/xml/v3/" + path`` with exactly one separator.

    Example:
      >>> v3_uri("http://localhost:8053/", "server")
      'http://localhost:8053/xml/v3/server'
      >>> v3_uri("http://localhost:8053", "server")
      'http://localhost:8053/xml/v3/server'
    """

    if base_uri.endswith("/"):
        return base_uri + V3_PREFIX + path
    return base_uri + "/" + V3_PREFIX + path


class Fetcher:
    """Brief: Single-attempt, deadline-bounded HTTP GET client.

    Inputs (constructor):
      - timeout: Seconds allowed for connect plus full body read. Connecting
        and waiting for the headers share one urllib3 total timeout; every
        body read after that is capped at the time left.
      - session: Optional pre-built requests.Session (tests inject fakes).

    Outputs:
      - Fetcher exposing get() for status-aware callers and fetch() for
        callers that only need the body.
    """

    def __init__(
        self, timeout: float, session: Optional[requests.Session] = None
    ) -> None:
        self.timeout = float(timeout)
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(max_retries=0)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def get(self, uri: str) -> HttpResult:
        """Brief: Issue one GET and return its status line and full body.

        Inputs:
          - uri: Absolute URI to request.

        Outputs:
          - HttpResult carrying the status code, reason and complete body.

        Raises:
          - TransportError: on connection/read failures or when the combined
            deadline expires before the body is complete.
        """

        deadline = time.monotonic() + self.timeout
        try:
            resp = self.session.get(
                uri, timeout=Timeout(total=self.timeout), stream=True
            )
        except requests.RequestException as exc:
            raise TransportError(uri, exc) from exc

        try:
            chunks = []
            self._cap_next_read(resp, uri, deadline)
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                chunks.append(chunk)
                self._cap_next_read(resp, uri, deadline)
        except requests.RequestException as exc:
            raise TransportError(uri, exc) from exc
        finally:
            resp.close()

        body = b"".join(chunks)
        logger.debug("GET %s -> %s (%d bytes)", uri, resp.status_code, len(body))
        return HttpResult(
            status_code=int(resp.status_code), reason=resp.reason or "", body=body
        )

    def _cap_next_read(self, resp: requests.Response, uri: str, deadline: float) -> None:
        """Brief: Bound the next body read by the time left before ``deadline``.

        Inputs:
          - resp: Streaming response whose body is still being read.
          - uri: Requested URI, for error messages.
          - deadline: time.monotonic() value the whole GET must finish by.

        Outputs:
          - None; lowers the socket timeout of the underlying connection so a
            stalled read fails at the deadline instead of one full read
            timeout later.

        Raises:
          - TransportError: when the deadline has already passed.
        """

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransportError(
                uri, f"deadline of {self.timeout:g}s exceeded while reading"
            )
        conn = getattr(getattr(resp, "raw", None), "connection", None)
        sock = getattr(conn, "sock", None)
        if sock is not None:
            sock.settimeout(remaining)

    def fetch(self, uri: str) -> bytes:
        """Return the unmodified body of ``uri``; status codes are not inspected."""

        return self.get(uri).body

    def close(self) -> None:
        self.session.close()
