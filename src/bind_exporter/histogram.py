"""Resolver round-trip-time histograms built from QryRTT bucket counters.

BIND reports resolver RTTs as plain counters whose names encode the bucket
upper bound in milliseconds, e.g. ``QryRTT10``, ``QryRTT100``, ``QryRTT1600``
and the overflow bucket ``QryRTT1600+``. The two builders below turn those
into a cumulative Prometheus histogram with bounds in seconds.

The Gen2 builder accumulates in the order the counters appear in the
document; the Gen3 builder sorts by bound first. Exported Gen2 bucket values
therefore depend on upstream ordering, and the two must not be unified.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .errors import HistogramParseError
from .schema.models import Counter
from .version import Version

RTT_PREFIX = "QryRTT"
OVERFLOW_MARKER = "+"

INF = math.inf


@dataclass(frozen=True)
class HistogramBucket:
    upper_bound: float
    cumulative_count: int


@dataclass(frozen=True)
class Histogram:
    """Brief: Cumulative histogram ready for exposition.

    Inputs:
      - buckets: Ascending by upper bound; the last bucket is always +Inf.
      - count: Total number of observations (final running sum).
    """

    buckets: Tuple[HistogramBucket, ...]
    count: int


def is_rtt_counter(name: str) -> bool:
    return name.startswith(RTT_PREFIX)


def rtt_upper_bound(name: str) -> float:
    """Brief: Derive a bucket upper bound in seconds from an RTT counter name.

    Inputs:
      - name: Counter name starting with ``QryRTT``.

    Outputs:
      - float: +Inf for names ending in ``+``, else milliseconds / 1000.

    Raises:
      - HistogramParseError: when the remainder is not a number.

    Example:
      >>> rtt_upper_bound("QryRTT100")
      0.1
      >>> rtt_upper_bound("QryRTT1600+")
      inf
    """

    if name.endswith(OVERFLOW_MARKER):
        return INF
    remainder = name[len(RTT_PREFIX):]
    try:
        millis = float(remainder)
    except ValueError:
        raise HistogramParseError(name, remainder) from None
    if math.isnan(millis):
        raise HistogramParseError(name, remainder)
    return millis / 1000


def _finish(cumulative: Dict[float, int], count: int) -> Histogram:
    buckets: List[HistogramBucket] = [
        HistogramBucket(bound, value) for bound, value in sorted(cumulative.items())
    ]
    if not buckets or buckets[-1].upper_bound != INF:
        buckets.append(HistogramBucket(INF, count))
    return Histogram(buckets=tuple(buckets), count=count)


def build_gen2(counters: Iterable[Counter]) -> Histogram:
    """Brief: Gen2 histogram: running sum in input order, no re-sorting.

    Inputs:
      - counters: Resolver counters of one view in document order; non-RTT
        names are ignored.

    Outputs:
      - Histogram whose bucket values are the running totals observed at
        each counter's position. A repeated bound keeps the last value.

    Raises:
      - HistogramParseError: first unparsable RTT bound.

    Example:
      >>> h = build_gen2([Counter("QryRTT10", 5), Counter("QryRTT100", 3),
      ...                 Counter("QryRTT100+", 2)])
      >>> [(b.upper_bound, b.cumulative_count) for b in h.buckets]
      [(0.01, 5), (0.1, 8), (inf, 10)]
    """

    cumulative: Dict[float, int] = {}
    count = 0
    for c in counters:
        if not is_rtt_counter(c.name):
            continue
        bound = rtt_upper_bound(c.name)
        cumulative[bound] = count + c.value
        count += c.value
    return _finish(cumulative, count)


def build_gen3(counters: Iterable[Counter]) -> Histogram:
    """Brief: Gen3 histogram: sort by bound, then accumulate.

    Inputs:
      - counters: Resolver counters of one view in any order.

    Outputs:
      - Histogram independent of input order. A repeated bound keeps the last
        raw count before accumulation.

    Raises:
      - HistogramParseError: first unparsable RTT bound.
    """

    raw: Dict[float, int] = {}
    for c in counters:
        if not is_rtt_counter(c.name):
            continue
        raw[rtt_upper_bound(c.name)] = c.value

    cumulative: Dict[float, int] = {}
    count = 0
    for bound in sorted(raw):
        count += raw[bound]
        cumulative[bound] = count
    return _finish(cumulative, count)


def build_histogram(generation: Version, counters: Iterable[Counter]) -> Histogram:
    """Dispatch to the builder matching the snapshot's schema generation."""

    if generation is Version.GEN3:
        return build_gen3(counters)
    return build_gen2(counters)
