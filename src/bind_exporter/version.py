"""Statistics schema generation detection.

BIND 9.10 and later serve the Gen3 XML layout under ``/xml/v3/``; older
releases only answer on the bare statistics URI with the Gen2 layout. The
detector requests ``/xml/v3/status`` once and decides by status code alone.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Optional

from .errors import DetectionError
from .fetcher import Fetcher, v3_uri

logger = logging.getLogger(__name__)


class Version(enum.Enum):
    """Statistics XML schema generation spoken by the target."""

    GEN2 = "v2"
    GEN3 = "v3"
    UNDETERMINED = "undetermined"


def classify_status(status_code: int) -> Optional[Version]:
    """Brief: Map a status-endpoint response code onto a schema generation.

    Inputs:
      - status_code: HTTP status of the ``/xml/v3/status`` request.

    Outputs:
      - Version.GEN3 for 2xx, Version.GEN2 for any other status below 500,
        None for 5xx (the caller must not guess).

    Example:
      >>> classify_status(200)
      <Version.GEN3: 'v3'>
      >>> classify_status(404)
      <Version.GEN2: 'v2'>
      >>> classify_status(503) is None
      True
    """

    if status_code >= 500:
        return None
    if 200 <= status_code < 300:
        return Version.GEN3
    return Version.GEN2


class VersionDetector:
    """Brief: Query the target once per cycle to pick the schema generation.

    Inputs (constructor):
      - fetcher: Fetcher used for the status request.
      - cache_version: When True, the first successful detection is reused by
        later cycles. The cached value is guarded by a lock because the
        exporter may serve overlapping scrapes. Default False: every cycle
        re-detects.

    Outputs:
      - VersionDetector exposing detect() and reset().
    """

    def __init__(self, fetcher: Fetcher, cache_version: bool = False) -> None:
        self.fetcher = fetcher
        self.cache_version = bool(cache_version)
        self._lock = threading.Lock()
        self._cached: Version = Version.UNDETERMINED

    @property
    def cached(self) -> Version:
        with self._lock:
            return self._cached

    def reset(self) -> None:
        """Forget any cached generation so the next detect() queries again."""

        with self._lock:
            self._cached = Version.UNDETERMINED

    def detect(self, base_uri: str) -> Version:
        """Brief: Determine whether ``base_uri`` serves Gen2 or Gen3 statistics.

        Inputs:
          - base_uri: Statistics channel base URI.

        Outputs:
          - Version.GEN3 or Version.GEN2.

        Raises:
          - TransportError: when the status request itself fails.
          - DetectionError: when the status endpoint answers with a 5xx status.
        """

        if self.cache_version:
            with self._lock:
                if self._cached is not Version.UNDETERMINED:
                    return self._cached

        uri = v3_uri(base_uri, "status")
        result = self.fetcher.get(uri)
        version = classify_status(result.status_code)
        if version is None:
            logger.error(
                "Error while querying Bind: %s %s", result.status_code, result.reason
            )
            raise DetectionError(uri, result.status_code, result.reason)

        logger.debug("Status %s returned %s; using %s", uri, result.status_code, version.value)
        if self.cache_version:
            with self._lock:
                self._cached = version
        return version
