"""
Brief: Global pytest configuration enforcing per-test 10s timeout, plus
shared fakes for the BIND statistics channel.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import sys

import pytest

# Ensure 'src' is on sys.path so 'bind_exporter' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from bind_exporter.fetcher import HttpResult  # noqa: E402

BASE_URI = "http://bind.test:8053/"

GEN2_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<isc version="1.0">
  <bind>
    <statistics version="2.2">
      <views>
        <view>
          <name>_default</name>
          <rdtype><name>A</name><counter>37</counter></rdtype>
          <rdtype><name>AAAA</name><counter>12</counter></rdtype>
          <resstat><name>Queryv4</name><counter>49</counter></resstat>
          <resstat><name>NXDOMAIN</name><counter>4</counter></resstat>
          <resstat><name>Lame</name><counter>9</counter></resstat>
          <resstat><name>ValOk</name><counter>3</counter></resstat>
          <resstat><name>QryRTT10</name><counter>5</counter></resstat>
          <resstat><name>QryRTT100</name><counter>3</counter></resstat>
          <resstat><name>QryRTT500+</name><counter>2</counter></resstat>
          <cache name="_default">
            <rrset><name>A</name><counter>34</counter></rrset>
            <rrset><name>!AAAA</name><counter>6</counter></rrset>
          </cache>
        </view>
      </views>
      <server>
        <requests>
          <opcode><name>QUERY</name><counter>37634</counter></opcode>
        </requests>
        <queries-in>
          <rdtype><name>A</name><counter>30000</counter></rdtype>
          <rdtype><name>PTR</name><counter>7634</counter></rdtype>
        </queries-in>
        <nsstat><name>Requestv4</name><counter>37634</counter></nsstat>
        <nsstat><name>QrySuccess</name><counter>29313</counter></nsstat>
        <nsstat><name>QryDropped</name><counter>237</counter></nsstat>
      </server>
      <taskmgr>
        <thread-model>
          <type>threaded</type>
          <worker-threads>16</worker-threads>
          <default-quantum>5</default-quantum>
          <tasks-running>1</tasks-running>
        </thread-model>
      </taskmgr>
    </statistics>
  </bind>
</isc>
"""

GEN3_SERVER_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<statistics version="3.6">
  <server>
    <counters type="opcode">
      <counter name="QUERY">37634</counter>
    </counters>
    <counters type="qtype">
      <counter name="A">30000</counter>
      <counter name="PTR">7634</counter>
    </counters>
    <counters type="nsstat">
      <counter name="QrySuccess">29313</counter>
      <counter name="QrySERVFAIL">57</counter>
    </counters>
  </server>
  <views>
    <view name="_default">
      <counters type="resqtype">
        <counter name="A">37</counter>
      </counters>
      <counters type="resstats">
        <counter name="QueryTimeout">2</counter>
        <counter name="Retry">8</counter>
        <counter name="QryRTT100">3</counter>
        <counter name="QryRTT10">5</counter>
        <counter name="QryRTT500+">2</counter>
      </counters>
      <cache name="_default">
        <rrset><name>A</name><counter>34</counter></rrset>
      </cache>
    </view>
  </views>
</statistics>
"""

GEN3_TASKS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<statistics version="3.6">
  <taskmgr>
    <thread-model>
      <type>threaded</type>
      <worker-threads>16</worker-threads>
      <tasks-running>1</tasks-running>
    </thread-model>
  </taskmgr>
</statistics>
"""


class FakeFetcher:
    """Brief: In-memory stand-in for Fetcher keyed by absolute URI.

    Inputs (constructor):
      - routes: dict uri -> HttpResult, bytes (served as 200) or an exception
        instance to raise.

    Outputs:
      - Object with get()/fetch() that records every requested URI in ``calls``.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, uri):
        self.calls.append(uri)
        if uri not in self.routes:
            return HttpResult(404, "Not Found", b"")
        target = self.routes[uri]
        if isinstance(target, BaseException):
            raise target
        if isinstance(target, HttpResult):
            return target
        return HttpResult(200, "OK", target)

    def fetch(self, uri):
        return self.get(uri).body

    def close(self):
        pass


@pytest.fixture
def fake_fetcher():
    """
    Brief: Factory fixture building FakeFetcher instances.

    Inputs:
      - None

    Outputs:
      - callable(routes) -> FakeFetcher
    """
    return FakeFetcher


@pytest.fixture
def base_uri():
    return BASE_URI


@pytest.fixture
def gen2_xml():
    return GEN2_XML


@pytest.fixture
def gen3_server_xml():
    return GEN3_SERVER_XML


@pytest.fixture
def gen3_tasks_xml():
    return GEN3_TASKS_XML


@pytest.fixture
def gen3_routes():
    """
    Brief: Routes for a healthy Gen3 server fetching the server and tasks groups.

    Inputs:
      - None

    Outputs:
      - dict uri -> response for FakeFetcher
    """
    return {
        BASE_URI + "xml/v3/status": HttpResult(200, "OK", b"<statistics/>"),
        BASE_URI + "xml/v3/server": GEN3_SERVER_XML,
        BASE_URI + "xml/v3/tasks": GEN3_TASKS_XML,
    }


@pytest.fixture
def gen2_routes():
    """
    Brief: Routes for a Gen2 server (status 404, document on the bare URI).

    Inputs:
      - None

    Outputs:
      - dict uri -> response for FakeFetcher
    """
    return {
        BASE_URI + "xml/v3/status": HttpResult(404, "Not Found", b""),
        BASE_URI: GEN2_XML,
    }


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield
