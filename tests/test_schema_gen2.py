"""
Brief: Tests for bind_exporter.schema.gen2 (single-document Gen2 layout).

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from bind_exporter.errors import TransportError, UnmarshalError
from bind_exporter.schema.gen2 import fetch_gen2, parse_gen2
from bind_exporter.schema.models import Counter, TaskManager
from bind_exporter.version import Version


def test_parse_gen2_server_counters(gen2_xml):
    """
    Brief: Server sections keep document order and values.

    Inputs:
      - sample Gen2 document

    Outputs:
      - None: Asserts queries_in, requests and nsstats contents
    """
    snap = parse_gen2(gen2_xml)
    assert snap.generation is Version.GEN2
    assert snap.queries_in == (Counter("A", 30000), Counter("PTR", 7634))
    assert snap.requests == (Counter("QUERY", 37634),)
    assert [c.name for c in snap.nsstats] == ["Requestv4", "QrySuccess", "QryDropped"]


def test_parse_gen2_views_and_taskmgr(gen2_xml):
    snap = parse_gen2(gen2_xml)
    assert len(snap.views) == 1
    view = snap.views[0]
    assert view.name == "_default"
    assert view.cache == (Counter("A", 34), Counter("!AAAA", 6))
    assert view.queries == (Counter("A", 37), Counter("AAAA", 12))
    assert [c.name for c in view.resstats][-3:] == ["QryRTT10", "QryRTT100", "QryRTT500+"]
    assert snap.taskmgr == TaskManager(tasks_running=1, worker_threads=16)


def test_parse_gen2_minimal_document_yields_empty_snapshot():
    snap = parse_gen2(b"<isc version='1.0'><bind/></isc>")
    assert snap.views == ()
    assert snap.nsstats == ()
    assert snap.taskmgr == TaskManager()


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"<isc><bind>",
        b"not xml at all",
        b"<statistics version='3.6'/>",
    ],
)
def test_parse_gen2_rejects_malformed(payload):
    """
    Brief: Malformed XML or the wrong document element is an UnmarshalError.

    Inputs:
      - payload: broken body

    Outputs:
      - None: Asserts UnmarshalError
    """
    with pytest.raises(UnmarshalError):
        parse_gen2(payload, source="http://bind/")


def test_parse_gen2_rejects_non_numeric_counter():
    doc = (
        b"<isc><bind><statistics><server>"
        b"<nsstat><name>QrySuccess</name><counter>lots</counter></nsstat>"
        b"</server></statistics></bind></isc>"
    )
    with pytest.raises(UnmarshalError) as excinfo:
        parse_gen2(doc)
    assert "QrySuccess" in str(excinfo.value)


def test_parse_gen2_rejects_entity_expansion():
    """
    Brief: Entity declarations from an untrusted peer are refused.

    Inputs:
      - document declaring an internal entity

    Outputs:
      - None: Asserts UnmarshalError rather than expansion
    """
    doc = (
        b'<?xml version="1.0"?>'
        b'<!DOCTYPE isc [<!ENTITY x "boom">]>'
        b"<isc><bind>&x;</bind></isc>"
    )
    with pytest.raises(UnmarshalError):
        parse_gen2(doc)


def test_fetch_gen2_reads_bare_uri(fake_fetcher, base_uri, gen2_routes):
    f = fake_fetcher(gen2_routes)
    snap = fetch_gen2(f, base_uri)
    assert f.calls == [base_uri]
    assert snap.generation is Version.GEN2


def test_fetch_gen2_propagates_transport_error(fake_fetcher, base_uri):
    f = fake_fetcher({base_uri: TransportError(base_uri, "reset")})
    with pytest.raises(TransportError):
        fetch_gen2(f, base_uri)


@pytest.mark.parametrize("value", ["²", "٣", "５", "-3", "+3", "1e3"])
def test_parse_gen2_rejects_non_ascii_and_signed_digits(value):
    """
    Brief: Only ASCII digits form a counter value.

    Inputs:
      - value: superscript, Arabic-Indic or fullwidth digit, or a signed number

    Outputs:
      - None: Asserts UnmarshalError naming the counter
    """
    doc = (
        "<isc><bind><statistics><server>"
        f"<nsstat><name>QrySuccess</name><counter>{value}</counter></nsstat>"
        "</server></statistics></bind></isc>"
    ).encode("utf-8")
    with pytest.raises(UnmarshalError) as excinfo:
        parse_gen2(doc)
    assert "QrySuccess" in str(excinfo.value)
