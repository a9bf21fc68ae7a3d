"""Parser for the Gen2 (BIND 9.5 - 9.9) statistics XML layout.

One GET against the bare statistics URI returns the whole document::

    <isc version="1.0">
      <bind>
        <statistics version="2.2">
          <views>
            <view>
              <name>_default</name>
              <rdtype><name>A</name><counter>10</counter></rdtype>
              <resstat><name>Queryv4</name><counter>10</counter></resstat>
              <cache name="_default">
                <rrset><name>A</name><counter>5</counter></rrset>
              </cache>
            </view>
          </views>
          <server>
            <requests><opcode><name>QUERY</name><counter>7</counter></opcode></requests>
            <queries-in><rdtype><name>A</name><counter>7</counter></rdtype></queries-in>
            <nsstat><name>QrySuccess</name><counter>6</counter></nsstat>
          </server>
          <taskmgr>
            <thread-model>
              <worker-threads>4</worker-threads>
              <tasks-running>1</tasks-running>
            </thread-model>
          </taskmgr>
        </statistics>
      </bind>
    </isc>
"""

from __future__ import annotations

import logging
from typing import List

from ..fetcher import Fetcher
from ..version import Version
from .models import StatsSnapshot, View
from .xmlutil import named_counters, parse_document, thread_model

logger = logging.getLogger(__name__)

ROOT_TAG = "isc"


def parse_gen2(data: bytes, source: str = "v2 statistics") -> StatsSnapshot:
    """Brief: Deserialize a complete Gen2 document into a StatsSnapshot.

    Inputs:
      - data: Raw XML body.
      - source: Label for error messages.

    Outputs:
      - StatsSnapshot tagged Version.GEN2 with counters in document order.

    Raises:
      - UnmarshalError: on malformed XML or non-numeric counters.
    """

    root = parse_document(data, source, ROOT_TAG)
    stats = root.find("bind/statistics")
    if stats is None:
        return StatsSnapshot(generation=Version.GEN2)

    server = stats.find("server")
    queries_in = []
    requests_ = []
    nsstats = []
    if server is not None:
        queries_in = named_counters(server.iterfind("queries-in/rdtype"), source)
        requests_ = named_counters(server.iterfind("requests/opcode"), source)
        nsstats = named_counters(server.iterfind("nsstat"), source)

    views: List[View] = []
    for view in stats.iterfind("views/view"):
        views.append(
            View(
                name=(view.findtext("name") or "").strip(),
                cache=tuple(named_counters(view.iterfind("cache/rrset"), source)),
                queries=tuple(named_counters(view.iterfind("rdtype"), source)),
                resstats=tuple(named_counters(view.iterfind("resstat"), source)),
            )
        )

    return StatsSnapshot(
        generation=Version.GEN2,
        queries_in=tuple(queries_in),
        requests=tuple(requests_),
        nsstats=tuple(nsstats),
        views=tuple(views),
        taskmgr=thread_model(stats.find("taskmgr"), source),
    )


def fetch_gen2(fetcher: Fetcher, base_uri: str) -> StatsSnapshot:
    """Fetch the bare statistics URI and parse it as Gen2."""

    body = fetcher.fetch(base_uri)
    snapshot = parse_gen2(body, source=base_uri)
    logger.debug("Parsed v2 statistics from %s (%d views)", base_uri, len(snapshot.views))
    return snapshot
