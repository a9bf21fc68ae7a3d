"""Brief: Unit tests for bind_exporter.config.config_parser helpers.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

import pytest

from bind_exporter.collector import DEFAULT_GROUPS
from bind_exporter.config import config_parser as cp


@pytest.mark.parametrize(
    "value,expected",
    [
        ("10s", 10.0),
        ("500ms", 0.5),
        ("1m30s", 90.0),
        ("1h", 3600.0),
        ("1.5s", 1.5),
        ("2.5", 2.5),
        (3, 3.0),
        (0.25, 0.25),
    ],
)
def test_parse_duration_accepts_seconds_and_go_durations(value, expected) -> None:
    """Brief: parse_duration accepts bare seconds and Go-style duration strings.

    Inputs:
      - value: duration spelling.

    Outputs:
      - None; asserts the parsed number of seconds.
    """

    assert cp.parse_duration(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", ["", "10x", "s10", "10s5", "ten seconds", True])
def test_parse_duration_rejects_malformed(value) -> None:
    with pytest.raises(ValueError):
        cp.parse_duration(value)


@pytest.mark.parametrize(
    "address,expected",
    [
        (":9119", ("0.0.0.0", 9119)),
        ("127.0.0.1:9119", ("127.0.0.1", 9119)),
        ("[::1]:9000", ("::1", 9000)),
        ("exporter.local:80", ("exporter.local", 80)),
    ],
)
def test_parse_listen_address(address, expected) -> None:
    assert cp.parse_listen_address(address) == expected


@pytest.mark.parametrize("address", ["9119", ":http", ":0", ":70000"])
def test_parse_listen_address_rejects_bad_values(address) -> None:
    with pytest.raises(ValueError):
        cp.parse_listen_address(address)


def test_build_config_defaults() -> None:
    """Brief: An empty mapping yields the documented defaults.

    Inputs:
      - None.

    Outputs:
      - None; asserts default values across all sections.
    """

    cfg = cp.build_config()
    assert cfg.bind.stats_uri == "http://localhost:8053/"
    assert cfg.bind.timeout == 10.0
    assert cfg.bind.metrics == list(DEFAULT_GROUPS)
    assert cfg.bind.pid_file is None
    assert cfg.bind.cache_version is False
    assert cfg.web.listen_address == ":9119"
    assert cfg.web.telemetry_path == "/metrics"
    assert cfg.logging.level == "info"


def test_build_config_overrides_win_over_raw() -> None:
    """Brief: CLI overrides replace file values key by key.

    Inputs:
      - raw mapping with bind and web sections; overrides touching one key.

    Outputs:
      - None; asserts the override applied and the sibling keys kept.
    """

    raw = {
        "bind": {"stats_uri": "http://ns1:8053/", "timeout": "5s"},
        "web": {"listen_address": "127.0.0.1:9119"},
    }
    cfg = cp.build_config(raw, {"bind": {"timeout": "250ms"}})
    assert cfg.bind.stats_uri == "http://ns1:8053/"
    assert cfg.bind.timeout == pytest.approx(0.25)
    assert cfg.web.listen_address == "127.0.0.1:9119"
    # Input mappings are not mutated by the merge.
    assert raw["bind"]["timeout"] == "5s"


@pytest.mark.parametrize(
    "metrics,expected",
    [
        ("server,tasks", ["server", "tasks"]),
        (" server , mem ", ["server", "mem"]),
        (["status", "zones"], ["status", "zones"]),
    ],
)
def test_metrics_accepts_list_or_comma_string(metrics, expected) -> None:
    assert cp.build_config({"bind": {"metrics": metrics}}).bind.metrics == expected


@pytest.mark.parametrize(
    "raw",
    [
        {"bind": {"metrics": ""}},
        {"bind": {"metrics": []}},
        {"bind": {"timeout": "0s"}},
        {"bind": {"timeout": "soon"}},
        {"bind": {"stats_uri": ""}},
        {"bind": {"unknown": 1}},
        {"web": {"telemetry_path": "/"}},
        {"web": {"telemetry_path": "metrics"}},
        {"web": {"listen_address": "9119"}},
        {"extra_section": {}},
    ],
)
def test_build_config_rejects_invalid(raw) -> None:
    """Brief: Validation failures surface as ValueError with a clear prefix.

    Inputs:
      - raw: mapping with one invalid value.

    Outputs:
      - None; asserts ValueError mentioning invalid configuration.
    """

    with pytest.raises(ValueError, match="Invalid configuration"):
        cp.build_config(raw)


def test_build_config_rejects_non_mapping_root() -> None:
    with pytest.raises(ValueError, match="must be a mapping"):
        cp.build_config(["bind"])  # type: ignore[arg-type]


def test_parse_config_file_reads_yaml(tmp_path) -> None:
    """Brief: parse_config_file loads YAML and applies overrides on top.

    Inputs:
      - tmp_path: temporary YAML config file.

    Outputs:
      - None; asserts values from file and overrides.
    """

    path = tmp_path / "bind_exporter.yaml"
    path.write_text(
        "bind:\n"
        "  stats_uri: http://10.0.0.53:8053/\n"
        "  timeout: 3s\n"
        "  metrics: [server, tasks]\n"
        "  pid_file: /run/named/named.pid\n"
        "  cache_version: true\n"
        "web:\n"
        "  telemetry_path: /bind/metrics\n"
        "logging:\n"
        "  level: debug\n"
    )
    cfg = cp.parse_config_file(str(path), {"web": {"listen_address": ":9200"}})
    assert cfg.bind.stats_uri == "http://10.0.0.53:8053/"
    assert cfg.bind.timeout == 3.0
    assert cfg.bind.metrics == ["server", "tasks"]
    assert cfg.bind.pid_file == "/run/named/named.pid"
    assert cfg.bind.cache_version is True
    assert cfg.web.telemetry_path == "/bind/metrics"
    assert cfg.web.listen_address == ":9200"
    assert cfg.logging.level == "debug"


def test_parse_config_file_empty_file_uses_defaults(tmp_path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert cp.parse_config_file(str(path)).bind.timeout == 10.0


def test_parse_config_file_none_path_uses_overrides_only() -> None:
    cfg = cp.parse_config_file(None, {"bind": {"pid_file": "/tmp/named.pid"}})
    assert cfg.bind.pid_file == "/tmp/named.pid"


def test_parse_config_file_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("bind: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        cp.parse_config_file(str(path))


def test_parse_config_file_missing_file(tmp_path) -> None:
    with pytest.raises(OSError):
        cp.parse_config_file(str(tmp_path / "absent.yaml"))
