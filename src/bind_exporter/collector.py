"""Scrape-cycle orchestration and prometheus_client integration.

Brief:
  BindCollector runs one scrape per collect() call:

      IDLE -> DETECTING -> FETCHING_GEN2 | FETCHING_GEN3 -> MAPPING -> EMITTING -> IDLE

  Detection, transport and unmarshal failures abort the cycle and report
  ``bind_up 0``. A histogram parse failure only drops the affected view's
  histogram; everything else in the snapshot is still exported and ``bind_up``
  stays 1.

  Cycles share no mutable state apart from the pooled HTTP session and the
  optional lock-guarded version cache in VersionDetector, so overlapping
  scrapes are safe.
"""

from __future__ import annotations

import enum
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    Metric,
)
from prometheus_client.utils import floatToGoString

from .errors import (
    BindExporterError,
    DetectionError,
    HistogramParseError,
    TransportError,
    UnmarshalError,
)
from .fetcher import Fetcher
from .mapping import (
    REGISTRY,
    UP,
    CanonicalMetric,
    MetricDescriptor,
    MetricKind,
    MetricRegistry,
    normalize,
)
from .schema.gen2 import fetch_gen2
from .schema.gen3 import fetch_gen3
from .version import Version, VersionDetector

logger = logging.getLogger(__name__)

DEFAULT_GROUPS: Tuple[str, ...] = ("mem", "server", "net", "zones")


class ScrapeState(enum.Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    FETCHING_GEN2 = "fetching_v2"
    FETCHING_GEN3 = "fetching_v3"
    MAPPING = "mapping"
    EMITTING = "emitting"


@dataclass
class ScrapeResult:
    """Brief: Outcome of one scrape cycle.

    Inputs:
      - up: 1 on success, 0 on any fatal failure.
      - version: Generation used, or UNDETERMINED when detection failed.
      - metrics: Canonical metrics (empty when up == 0).
      - histogram_errors: (view, error) pairs for skipped histograms.
      - error: The fatal error, if any.
      - states: Ordered states the cycle passed through.
      - duration: Wall-clock seconds spent in the cycle.
    """

    up: int = 0
    version: Version = Version.UNDETERMINED
    metrics: List[CanonicalMetric] = field(default_factory=list)
    histogram_errors: List[Tuple[str, HistogramParseError]] = field(
        default_factory=list
    )
    error: Optional[BindExporterError] = None
    states: List[ScrapeState] = field(default_factory=list)
    duration: float = 0.0


class BindCollector:
    """Brief: prometheus_client custom collector for a BIND statistics channel.

    Inputs (constructor):
      - stats_uri: Statistics channel base URI (e.g. http://localhost:8053/).
      - groups: Gen3 metric groups to fetch, in order.
      - timeout: Per-request deadline in seconds (ignored when fetcher given).
      - fetcher: Optional Fetcher (tests inject fakes).
      - detector: Optional VersionDetector sharing ``fetcher``.
      - cache_version: Reuse the first detected generation across cycles.
      - registry: Metric routing registry.

    Outputs:
      - Collector usable with CollectorRegistry.register().

    Example:
      >>> from prometheus_client import CollectorRegistry
      >>> registry = CollectorRegistry()
      >>> registry.register(BindCollector("http://localhost:8053/", ["server"]))
    """

    def __init__(
        self,
        stats_uri: str,
        groups: Sequence[str] = DEFAULT_GROUPS,
        timeout: float = 10.0,
        fetcher: Optional[Fetcher] = None,
        detector: Optional[VersionDetector] = None,
        cache_version: bool = False,
        registry: MetricRegistry = REGISTRY,
    ) -> None:
        self.stats_uri = stats_uri
        self.groups: Tuple[str, ...] = tuple(groups)
        self.fetcher = fetcher or Fetcher(timeout)
        self.detector = detector or VersionDetector(
            self.fetcher, cache_version=cache_version
        )
        self.registry = registry

    def scrape(self) -> ScrapeResult:
        """Brief: Run one full acquisition and normalization cycle.

        Inputs:
          - None.

        Outputs:
          - ScrapeResult; never raises for pipeline errors.
        """

        result = ScrapeResult()
        started = time.monotonic()

        def enter(state: ScrapeState) -> None:
            result.states.append(state)
            logger.debug("scrape %s: %s", self.stats_uri, state.value)

        enter(ScrapeState.IDLE)
        try:
            enter(ScrapeState.DETECTING)
            result.version = self.detector.detect(self.stats_uri)

            if result.version is Version.GEN3:
                enter(ScrapeState.FETCHING_GEN3)
                snapshot = fetch_gen3(self.fetcher, self.stats_uri, self.groups)
            else:
                enter(ScrapeState.FETCHING_GEN2)
                snapshot = fetch_gen2(self.fetcher, self.stats_uri)
        except DetectionError as exc:
            result.error = exc
        except (TransportError, UnmarshalError) as exc:
            if result.version is Version.UNDETERMINED:
                logger.error("Error while querying Bind: %s", exc)
            else:
                logger.error(
                    "Failed to fetch/unmarshal XML (%s): %s", result.version.value, exc
                )
            result.error = exc
        else:
            enter(ScrapeState.MAPPING)
            mapped = normalize(snapshot, self.registry)
            for view, err in mapped.histogram_errors:
                logger.warning("Error parsing RTT for view %s: %s", view, err)
            enter(ScrapeState.EMITTING)
            result.metrics = mapped.metrics
            result.histogram_errors = mapped.histogram_errors
            result.up = 1

        enter(ScrapeState.IDLE)
        result.duration = time.monotonic() - started
        return result

    def describe(self) -> Iterator[Metric]:
        """Yield empty families for every descriptor without touching BIND."""

        for descriptor in self.registry.descriptors:
            yield _new_family(descriptor)

    def collect(self) -> Iterator[Metric]:
        result = self.scrape()
        yield from to_families(result.metrics)
        yield GaugeMetricFamily(UP.name, UP.documentation, value=float(result.up))


def _new_family(descriptor: MetricDescriptor) -> Metric:
    labels = list(descriptor.labels)
    if descriptor.kind is MetricKind.COUNTER:
        return CounterMetricFamily(descriptor.name, descriptor.documentation, labels=labels)
    if descriptor.kind is MetricKind.GAUGE:
        return GaugeMetricFamily(descriptor.name, descriptor.documentation, labels=labels)
    return HistogramMetricFamily(descriptor.name, descriptor.documentation, labels=labels)


def to_families(metrics: Iterable[CanonicalMetric]) -> List[Metric]:
    """Brief: Group canonical metrics into prometheus_client metric families.

    Inputs:
      - metrics: Canonical metrics in emission order.

    Outputs:
      - list of families, one per metric name, in first-seen order. Label
        names follow the descriptor so ordering is stable across scrapes.
    """

    families: Dict[str, Metric] = {}
    for metric in metrics:
        family = families.get(metric.name)
        if family is None:
            family = families[metric.name] = _new_family(metric.descriptor)

        if metric.kind is MetricKind.HISTOGRAM and metric.histogram is not None:
            _add_histogram(family, metric)
        else:
            family.add_metric(list(metric.label_values), metric.value)
    return list(families.values())


def _add_histogram(family: Metric, metric: CanonicalMetric) -> None:
    """Append bucket, count and sum samples for one histogram series.

    ``_count`` comes from Histogram.count rather than the ``+Inf`` bucket,
    which can hold less than the running total for out-of-order Gen2 input.
    """

    labels = dict(metric.labels)
    for bucket in metric.histogram.buckets:
        family.add_sample(
            family.name + "_bucket",
            {**labels, "le": floatToGoString(bucket.upper_bound)},
            bucket.cumulative_count,
        )
    family.add_sample(family.name + "_count", labels, metric.histogram.count)
    # BIND does not report an RTT sum.
    family.add_sample(family.name + "_sum", labels, math.nan)
