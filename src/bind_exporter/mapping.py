"""Canonical metric vocabulary and the mapper from BIND counters onto it.

Brief:
  The registry below is built once at import time and never mutated. It holds
  every metric descriptor the exporter can emit plus the routes from raw BIND
  counter names to those descriptors. A route is either DEDICATED (the counter
  owns a metric labeled only by view) or SHARED (several counters feed one
  metric and are told apart by a label carrying the counter name).

  normalize() walks a StatsSnapshot and produces CanonicalMetric values. Names
  with no route are dropped without error.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import HistogramParseError
from .histogram import Histogram, build_histogram, is_rtt_counter
from .schema.models import Counter, StatsSnapshot, View
from .version import Version

NAMESPACE = "bind"
RESOLVER = "resolver"
SERVER_RESULT_PREFIX = "Qry"


class MetricKind(enum.Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text, kind and ordered label names of one exported metric."""

    name: str
    documentation: str
    kind: MetricKind
    labels: Tuple[str, ...] = ()


def fq_name(*parts: str) -> str:
    """Join non-empty name parts with underscores, like BuildFQName.

    Example:
      >>> fq_name("bind", "", "up")
      'bind_up'
    """

    return "_".join(p for p in parts if p)


def _desc(subsystem: str, name: str, doc: str, kind: MetricKind, *labels: str):
    return MetricDescriptor(fq_name(NAMESPACE, subsystem, name), doc, kind, labels)


COUNTER = MetricKind.COUNTER
GAUGE = MetricKind.GAUGE

UP = _desc("", "up", "Was the Bind instance query successful?", GAUGE)
INCOMING_QUERIES = _desc(
    "", "incoming_queries_total", "Number of incoming DNS queries.", COUNTER, "type"
)
INCOMING_REQUESTS = _desc(
    "", "incoming_requests_total", "Number of incoming DNS requests.", COUNTER, "name"
)
QUERY_ERRORS = _desc("", "query_errors_total", "Number of query failures.", COUNTER, "error")
RESPONSES = _desc("", "responses_total", "Number of responses sent.", COUNTER, "result")
TASKS_RUNNING = _desc("", "tasks_running", "Number of running tasks.", GAUGE)
WORKER_THREADS = _desc(
    "", "worker_threads", "Total number of available worker threads.", GAUGE
)
RESOLVER_CACHE = _desc(
    RESOLVER, "cache_rrsets", "Number of RRSets in Cache database.", GAUGE, "view", "type"
)
RESOLVER_QUERIES = _desc(
    RESOLVER, "queries_total", "Number of outgoing DNS queries.", COUNTER, "view", "type"
)
RESOLVER_QUERY_DURATION = _desc(
    RESOLVER,
    "query_duration_seconds",
    "Resolver query round-trip time in seconds.",
    MetricKind.HISTOGRAM,
    "view",
)
RESOLVER_QUERY_ERRORS = _desc(
    RESOLVER, "query_errors_total", "Number of resolver queries failed.", COUNTER, "view", "error"
)
RESOLVER_RESPONSE_ERRORS = _desc(
    RESOLVER,
    "response_errors_total",
    "Number of resolver response errors received.",
    COUNTER,
    "view",
    "error",
)
RESOLVER_DNSSEC_SUCCESS = _desc(
    RESOLVER,
    "dnssec_validation_success_total",
    "Number of DNSSEC validation attempts succeeded.",
    COUNTER,
    "view",
    "result",
)
RESOLVER_LAME = _desc(
    RESOLVER, "response_lame_total", "Number of lame delegation responses received.", COUNTER, "view"
)
RESOLVER_EDNS0_ERRORS = _desc(
    RESOLVER, "query_edns0_errors_total", "Number of EDNS(0) query errors.", COUNTER, "view"
)
RESOLVER_MISMATCH = _desc(
    RESOLVER, "response_mismatch_total", "Number of mismatch responses received.", COUNTER, "view"
)
RESOLVER_RETRIES = _desc(
    RESOLVER, "query_retries_total", "Number of resolver query retries.", COUNTER, "view"
)
RESOLVER_TRUNCATED = _desc(
    RESOLVER, "response_truncated_total", "Number of truncated responses received.", COUNTER, "view"
)
RESOLVER_DNSSEC_ERRORS = _desc(
    RESOLVER,
    "dnssec_validation_errors_total",
    "Number of DNSSEC validation attempt errors.",
    COUNTER,
    "view",
)


class RouteKind(enum.Enum):
    DEDICATED = "dedicated"
    SHARED = "shared"


@dataclass(frozen=True)
class Route:
    """Brief: Where one raw counter name lands in the canonical vocabulary.

    Inputs:
      - kind: DEDICATED routes add no label beyond the scope labels (view);
        SHARED routes append the counter name as the discriminating label.
      - descriptor: Target metric.
      - strip_prefix: Prefix removed from the raw name to form the label.
    """

    kind: RouteKind
    descriptor: MetricDescriptor
    strip_prefix: str = ""

    def label_value(self, raw_name: str) -> str:
        if self.strip_prefix and raw_name.startswith(self.strip_prefix):
            return raw_name[len(self.strip_prefix):]
        return raw_name

    def extra_labels(self, raw_name: str) -> Tuple[str, ...]:
        if self.kind is RouteKind.SHARED:
            return (self.label_value(raw_name),)
        return ()


@dataclass(frozen=True)
class MetricRegistry:
    """Brief: Immutable descriptor set plus raw-name routing tables.

    Inputs:
      - descriptors: Every metric the exporter may emit, in describe() order.
      - server_routes: nsstat counter name -> routes.
      - resolver_routes: per-view resstat counter name -> routes. A name may
        carry several routes; each is applied independently.
    """

    descriptors: Tuple[MetricDescriptor, ...]
    server_routes: Mapping[str, Tuple[Route, ...]] = field(default_factory=dict)
    resolver_routes: Mapping[str, Tuple[Route, ...]] = field(default_factory=dict)

    def routes_for_server(self, name: str) -> Tuple[Route, ...]:
        return self.server_routes.get(name, ())

    def routes_for_resolver(self, name: str) -> Tuple[Route, ...]:
        return self.resolver_routes.get(name, ())


def _index(*tables: Sequence[Tuple[str, Route]]) -> Mapping[str, Tuple[Route, ...]]:
    merged: Dict[str, Tuple[Route, ...]] = {}
    for table in tables:
        for name, route in table:
            merged[name] = merged.get(name, ()) + (route,)
    return MappingProxyType(merged)


def _shared(descriptor: MetricDescriptor, strip_prefix: str = "") -> Route:
    return Route(RouteKind.SHARED, descriptor, strip_prefix)


def _dedicated(descriptor: MetricDescriptor) -> Route:
    return Route(RouteKind.DEDICATED, descriptor)


_SERVER_SHARED = [
    (name, _shared(QUERY_ERRORS, SERVER_RESULT_PREFIX))
    for name in ("QryDuplicate", "QryDropped", "QryFailure")
] + [
    (name, _shared(RESPONSES, SERVER_RESULT_PREFIX))
    for name in (
        "QrySuccess",
        "QryReferral",
        "QryNxrrset",
        "QrySERVFAIL",
        "QryFORMERR",
        "QryNXDOMAIN",
    )
]

_RESOLVER_DEDICATED = [
    ("Lame", _dedicated(RESOLVER_LAME)),
    ("EDNS0Fail", _dedicated(RESOLVER_EDNS0_ERRORS)),
    ("Mismatch", _dedicated(RESOLVER_MISMATCH)),
    ("Retry", _dedicated(RESOLVER_RETRIES)),
    ("Truncated", _dedicated(RESOLVER_TRUNCATED)),
    ("ValFail", _dedicated(RESOLVER_DNSSEC_ERRORS)),
]

_RESOLVER_SHARED = (
    [
        (name, _shared(RESOLVER_QUERY_ERRORS))
        for name in ("QueryAbort", "QuerySockFail", "QueryTimeout")
    ]
    + [
        (name, _shared(RESOLVER_RESPONSE_ERRORS))
        for name in ("NXDOMAIN", "SERVFAIL", "FORMERR", "OtherError")
    ]
    + [(name, _shared(RESOLVER_DNSSEC_SUCCESS)) for name in ("ValOk", "ValNegOk")]
)

REGISTRY = MetricRegistry(
    descriptors=(
        UP,
        INCOMING_QUERIES,
        INCOMING_REQUESTS,
        QUERY_ERRORS,
        RESPONSES,
        RESOLVER_CACHE,
        RESOLVER_QUERIES,
        RESOLVER_QUERY_DURATION,
        RESOLVER_QUERY_ERRORS,
        RESOLVER_RESPONSE_ERRORS,
        RESOLVER_DNSSEC_SUCCESS,
        RESOLVER_LAME,
        RESOLVER_EDNS0_ERRORS,
        RESOLVER_MISMATCH,
        RESOLVER_RETRIES,
        RESOLVER_TRUNCATED,
        RESOLVER_DNSSEC_ERRORS,
        TASKS_RUNNING,
        WORKER_THREADS,
    ),
    server_routes=_index(_SERVER_SHARED),
    resolver_routes=_index(_RESOLVER_DEDICATED, _RESOLVER_SHARED),
)


@dataclass(frozen=True)
class CanonicalMetric:
    """Brief: One normalized sample (or histogram) ready for exposition.

    Inputs:
      - descriptor: Metric descriptor (name, kind, label names).
      - label_values: Values aligned with descriptor.labels.
      - value: Sample value for counters and gauges.
      - histogram: Bucket set for histogram metrics.
    """

    descriptor: MetricDescriptor
    label_values: Tuple[str, ...] = ()
    value: float = 0.0
    histogram: Optional[Histogram] = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def kind(self) -> MetricKind:
        return self.descriptor.kind

    @property
    def labels(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(zip(self.descriptor.labels, self.label_values))


@dataclass
class MappingResult:
    """Metrics produced from one snapshot plus per-view histogram failures."""

    metrics: List[CanonicalMetric] = field(default_factory=list)
    histogram_errors: List[Tuple[str, HistogramParseError]] = field(
        default_factory=list
    )


def _sample(
    descriptor: MetricDescriptor, value: int, *label_values: str
) -> CanonicalMetric:
    return CanonicalMetric(descriptor, tuple(label_values), float(value))


def _map_counters(
    descriptor: MetricDescriptor, counters: Sequence[Counter], *scope: str
) -> List[CanonicalMetric]:
    return [_sample(descriptor, c.value, *scope, c.name) for c in counters]


def _map_routed(
    routes_for, counters: Sequence[Counter], *scope: str
) -> List[CanonicalMetric]:
    out: List[CanonicalMetric] = []
    for c in counters:
        for route in routes_for(c.name):
            out.append(
                _sample(route.descriptor, c.value, *scope, *route.extra_labels(c.name))
            )
    return out


def _map_view(
    snapshot: StatsSnapshot, view: View, registry: MetricRegistry, result: MappingResult
) -> None:
    result.metrics.extend(_map_counters(RESOLVER_CACHE, view.cache, view.name))
    result.metrics.extend(_map_counters(RESOLVER_QUERIES, view.queries, view.name))

    resstats = [c for c in view.resstats if not is_rtt_counter(c.name)]
    result.metrics.extend(_map_routed(registry.routes_for_resolver, resstats, view.name))

    # Gen3 views without a resstats group (e.g. _bind) get no histogram.
    if snapshot.generation is Version.GEN3 and not view.resstats:
        return
    try:
        histogram = build_histogram(snapshot.generation, view.resstats)
    except HistogramParseError as exc:
        result.histogram_errors.append((view.name, exc))
        return
    result.metrics.append(
        CanonicalMetric(RESOLVER_QUERY_DURATION, (view.name,), histogram=histogram)
    )


def normalize(
    snapshot: StatsSnapshot, registry: MetricRegistry = REGISTRY
) -> MappingResult:
    """Brief: Map a snapshot onto the canonical metric vocabulary.

    Inputs:
      - snapshot: Parsed Gen2 or merged Gen3 statistics.
      - registry: Routing tables (defaults to the module REGISTRY).

    Outputs:
      - MappingResult with metrics in a stable order (server counters, then
        each view, then task manager gauges) and any per-view histogram
        parse failures.

    Example:
      >>> from bind_exporter.version import Version
      >>> snap = StatsSnapshot(Version.GEN2, nsstats=(Counter("QrySuccess", 10),))
      >>> [(m.name, m.labels, m.value) for m in normalize(snap).metrics][0]
      ('bind_responses_total', (('result', 'Success'),), 10.0)
    """

    result = MappingResult()
    result.metrics.extend(_map_counters(INCOMING_QUERIES, snapshot.queries_in))
    result.metrics.extend(_map_counters(INCOMING_REQUESTS, snapshot.requests))
    result.metrics.extend(_map_routed(registry.routes_for_server, snapshot.nsstats))

    for view in snapshot.views:
        _map_view(snapshot, view, registry, result)

    result.metrics.append(_sample(TASKS_RUNNING, snapshot.taskmgr.tasks_running))
    result.metrics.append(_sample(WORKER_THREADS, snapshot.taskmgr.worker_threads))
    return result
