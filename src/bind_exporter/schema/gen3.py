"""Parser and merger for the Gen3 (BIND 9.10+) statistics XML layout.

Gen3 splits statistics across one endpoint per metric group
(``/xml/v3/server``, ``/xml/v3/mem``, ``/xml/v3/tasks`` ...). Every payload is
a ``<statistics>`` document carrying only the parts its group covers::

    <statistics version="3.6">
      <server>
        <counters type="opcode"><counter name="QUERY">7</counter></counters>
        <counters type="qtype"><counter name="A">7</counter></counters>
        <counters type="nsstat"><counter name="QrySuccess">6</counter></counters>
      </server>
      <views>
        <view name="_default">
          <counters type="resqtype"><counter name="A">3</counter></counters>
          <counters type="resstats"><counter name="QryRTT10">2</counter></counters>
          <cache name="_default">
            <rrset><name>A</name><counter>5</counter></rrset>
          </cache>
        </view>
      </views>
      <taskmgr>
        <thread-model><worker-threads>4</worker-threads><tasks-running>1</tasks-running></thread-model>
      </taskmgr>
    </statistics>

Each group is parsed into its own immutable Gen3Document. merge_gen3() then
folds the documents together in fetch order. When two groups report the same
(counter type, name[, view]) key the value from the later group wins, while
the key keeps the position where it was first seen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..fetcher import Fetcher, v3_uri
from ..version import Version
from .models import Counter, StatsSnapshot, TaskManager, View
from .xmlutil import named_counters, parse_document, thread_model, to_uint

logger = logging.getLogger(__name__)

ROOT_TAG = "statistics"

QTYPE = "qtype"
OPCODE = "opcode"
NSSTAT = "nsstat"
RESQTYPE = "resqtype"
RESSTATS = "resstats"
# Pseudo group type used to key per-view cache rrsets during merge.
CACHE = "cache"


@dataclass(frozen=True)
class CounterGroup:
    """A ``<counters type="...">`` block."""

    type: str
    counters: Tuple[Counter, ...]


@dataclass(frozen=True)
class ViewDocument:
    name: str
    cache: Tuple[Counter, ...] = ()
    groups: Tuple[CounterGroup, ...] = ()


@dataclass(frozen=True)
class Gen3Document:
    """Brief: The parsed content of one Gen3 metric group payload.

    Inputs:
      - source: URI (or label) the payload came from.
      - server: Server-level counter groups in document order.
      - views: Per-view cache and counter groups in document order.
      - taskmgr: Thread-model summary, or None when the group omits it.
    """

    source: str
    server: Tuple[CounterGroup, ...] = ()
    views: Tuple[ViewDocument, ...] = ()
    taskmgr: Optional[TaskManager] = None


def _counter_groups(parent, source: str) -> Tuple[CounterGroup, ...]:
    groups: List[CounterGroup] = []
    for block in parent.iterfind("counters"):
        gtype = block.get("type", "")
        counters = tuple(
            Counter(c.get("name", ""), to_uint(c.text, source, c.get("name", "")))
            for c in block.iterfind("counter")
        )
        groups.append(CounterGroup(gtype, counters))
    return tuple(groups)


def parse_gen3_group(data: bytes, source: str = "v3 statistics") -> Gen3Document:
    """Brief: Deserialize one Gen3 group payload into an independent document.

    Inputs:
      - data: Raw XML body of ``/xml/v3/<group>``.
      - source: Label for error messages (usually the group URI).

    Outputs:
      - Gen3Document holding whatever server, view and task-manager parts the
        payload carries.

    Raises:
      - UnmarshalError: on malformed XML or non-numeric counters.
    """

    root = parse_document(data, source, ROOT_TAG)

    server = root.find("server")
    server_groups = _counter_groups(server, source) if server is not None else ()

    views: List[ViewDocument] = []
    for view in root.iterfind("views/view"):
        views.append(
            ViewDocument(
                name=view.get("name", ""),
                cache=tuple(named_counters(view.iterfind("cache/rrset"), source)),
                groups=_counter_groups(view, source),
            )
        )

    taskmgr_elem = root.find("taskmgr")
    taskmgr = thread_model(taskmgr_elem, source) if taskmgr_elem is not None else None

    return Gen3Document(
        source=source, server=server_groups, views=tuple(views), taskmgr=taskmgr
    )


class _Accumulator:
    """Ordered last-wins store keyed by (group type, counter name)."""

    def __init__(self) -> None:
        self._groups: Dict[str, Dict[str, int]] = {}

    def put(self, gtype: str, counters: Iterable[Counter]) -> None:
        bucket = self._groups.setdefault(gtype, {})
        for c in counters:
            # Re-assigning an existing key keeps its original position.
            bucket[c.name] = c.value

    def get(self, gtype: str) -> Tuple[Counter, ...]:
        return tuple(Counter(n, v) for n, v in self._groups.get(gtype, {}).items())


def merge_gen3(documents: Sequence[Gen3Document]) -> StatsSnapshot:
    """Brief: Fold per-group documents into one deduplicated snapshot.

    Inputs:
      - documents: Parsed groups in the order they were fetched.

    Outputs:
      - StatsSnapshot tagged Version.GEN3.

    Rules:
      - Server counters are keyed by (type, name), view counters by
        (view, type, name) and cache rrsets by (view, name); a later document
        overwrites the value of an existing key.
      - Views are never merged with each other; documents contribute to the
        view with the same name.
      - The last document that carries a task-manager summary wins.

    Example:
      >>> a = Gen3Document("a", server=(CounterGroup("qtype", (Counter("A", 1),)),))
      >>> b = Gen3Document("b", server=(CounterGroup("qtype", (Counter("A", 5),)),))
      >>> merge_gen3([a, b]).queries_in
      (Counter(name='A', value=5),)
    """

    server = _Accumulator()
    views: Dict[str, _Accumulator] = {}
    taskmgr: Optional[TaskManager] = None

    for doc in documents:
        for group in doc.server:
            server.put(group.type, group.counters)
        for view in doc.views:
            acc = views.setdefault(view.name, _Accumulator())
            acc.put(CACHE, view.cache)
            for group in view.groups:
                acc.put(group.type, group.counters)
        if doc.taskmgr is not None:
            taskmgr = doc.taskmgr

    return StatsSnapshot(
        generation=Version.GEN3,
        queries_in=server.get(QTYPE),
        requests=server.get(OPCODE),
        nsstats=server.get(NSSTAT),
        views=tuple(
            View(
                name=name,
                cache=acc.get(CACHE),
                queries=acc.get(RESQTYPE),
                resstats=acc.get(RESSTATS),
            )
            for name, acc in views.items()
        ),
        taskmgr=taskmgr or TaskManager(),
    )


def fetch_gen3(
    fetcher: Fetcher, base_uri: str, groups: Sequence[str]
) -> StatsSnapshot:
    """Brief: Fetch and parse every configured group, then merge.

    Inputs:
      - fetcher: Fetcher used for the group requests.
      - base_uri: Statistics channel base URI.
      - groups: Metric group names, fetched in this order.

    Outputs:
      - Merged StatsSnapshot.

    Raises:
      - TransportError / UnmarshalError from the first failing group; the
        remaining groups are not fetched.
    """

    documents: List[Gen3Document] = []
    for group in groups:
        uri = v3_uri(base_uri, group)
        documents.append(parse_gen3_group(fetcher.fetch(uri), source=uri))
    logger.debug("Fetched %d v3 metric groups from %s", len(documents), base_uri)
    return merge_gen3(documents)
