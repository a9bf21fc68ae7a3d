"""Exception types raised by the BIND statistics pipeline.

Brief:
  Every failure a scrape cycle can hit is expressed as a subclass of
  BindExporterError so the collector can decide, by type alone, whether the
  cycle is lost (``up`` drops to 0) or only a single view is degraded.

Fatal per cycle:
  - TransportError: connect/read failure or timeout on any upstream GET.
  - DetectionError: the version status request answered with a 5xx status.
  - UnmarshalError: a payload was not well-formed statistics XML.

Recovered locally:
  - HistogramParseError: an RTT bucket counter name has an unparsable bound.
"""

from __future__ import annotations


class BindExporterError(Exception):
    """Base class for all exporter pipeline errors."""


class TransportError(BindExporterError):
    """Brief: An upstream GET could not complete.

    Inputs:
      - uri: The URI that was being fetched.
      - reason: Human-readable cause (usually the underlying requests error).
    """

    def __init__(self, uri: str, reason: object) -> None:
        self.uri = uri
        self.reason = reason
        super().__init__(f"error fetching {uri}: {reason}")


class DetectionError(BindExporterError):
    """The version status request returned a server error; no generation is guessed."""

    def __init__(self, uri: str, status_code: int, reason: str = "") -> None:
        self.uri = uri
        self.status_code = status_code
        text = f"{status_code} {reason}".strip()
        super().__init__(f"version detection via {uri} failed: {text}")


class UnmarshalError(BindExporterError):
    """A statistics payload could not be parsed as XML."""

    def __init__(self, source: str, reason: object) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"failed to unmarshal {source}: {reason}")


class HistogramParseError(BindExporterError):
    """Brief: An RTT bucket counter carried a bound that is not a number.

    Inputs:
      - counter_name: Full counter name, e.g. ``QryRTTabc``.
      - remainder: The part after the RTT prefix that failed to parse.
    """

    def __init__(self, counter_name: str, remainder: str) -> None:
        self.counter_name = counter_name
        self.remainder = remainder
        super().__init__(f"could not parse RTT: {remainder!r} ({counter_name})")
