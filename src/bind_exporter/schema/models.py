"""Generation-tagged statistics snapshot shared by both XML parsers.

Both schema parsers reduce their documents to the same immutable shape so the
mapper never needs to know which XML layout the counters came from. Only the
histogram builder still looks at ``generation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from ..version import Version


@dataclass(frozen=True)
class Counter:
    """A named, non-negative counter value as reported by BIND."""

    name: str
    value: int


@dataclass(frozen=True)
class View:
    """Brief: Per-view resolver statistics.

    Inputs:
      - name: View name, unique within one snapshot (e.g. ``_default``).
      - cache: RRset counts in the view's cache, by record type.
      - queries: Outgoing resolver queries, by record type.
      - resstats: Resolver operation counters, by name (includes QryRTT*).
    """

    name: str
    cache: Tuple[Counter, ...] = ()
    queries: Tuple[Counter, ...] = ()
    resstats: Tuple[Counter, ...] = ()


@dataclass(frozen=True)
class TaskManager:
    tasks_running: int = 0
    worker_threads: int = 0


@dataclass(frozen=True)
class StatsSnapshot:
    """Brief: One scrape's worth of statistics.

    Inputs:
      - generation: Schema generation the counters were parsed from.
      - queries_in: Incoming queries by record type.
      - requests: Incoming requests by opcode.
      - nsstats: Name-server operational counters.
      - views: Resolver views in document order.
      - taskmgr: Task manager thread-model summary.
    """

    generation: Version
    queries_in: Tuple[Counter, ...] = ()
    requests: Tuple[Counter, ...] = ()
    nsstats: Tuple[Counter, ...] = ()
    views: Tuple[View, ...] = ()
    taskmgr: TaskManager = field(default_factory=TaskManager)
