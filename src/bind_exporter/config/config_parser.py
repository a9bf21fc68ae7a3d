"""Configuration loading and validation for bind_exporter.

Brief:
  Configuration comes from an optional YAML file plus command-line overrides.
  The merged mapping is validated by the pydantic models below, which also
  normalize the few values that accept more than one spelling (durations,
  comma-separated group lists).

Inputs:
  - YAML config paths and CLI override mappings

Outputs:
  - ExporterConfig instances
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..collector import DEFAULT_GROUPS

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float]) -> float:
    """Brief: Parse a timeout given as seconds or as a Go-style duration.

    Inputs:
      - value: Number of seconds, a numeric string, or a duration string such
        as ``500ms``, ``10s`` or ``1m30s``.

    Outputs:
      - float seconds.

    Raises:
      - ValueError: for empty or malformed durations.

    Example:
      >>> parse_duration("1m30s")
      90.0
      >>> parse_duration(2)
      2.0
    """

    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {text!r}")
    return total


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Brief: Split a ``host:port`` listen address.

    Inputs:
      - address: ``:9119``, ``127.0.0.1:9119`` or ``[::1]:9119``.

    Outputs:
      - (host, port); an empty host means all IPv4 interfaces.

    Example:
      >>> parse_listen_address(":9119")
      ('0.0.0.0', 9119)
      >>> parse_listen_address("[::1]:9000")
      ('::1', 9000)
    """

    host, sep, port = str(address).rpartition(":")
    if not sep:
        raise ValueError(f"listen address {address!r} must be host:port")
    host = host.strip("[]") or "0.0.0.0"
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None
    if not 0 < port_num < 65536:
        raise ValueError(f"port out of range in listen address {address!r}")
    return host, port_num


class BindConfig(BaseModel):
    """Brief: Upstream statistics channel settings.

    Inputs:
      - stats_uri: Base URI of BIND's statistics channel.
      - timeout: Per-request deadline in seconds (duration strings accepted).
      - metrics: Gen3 metric groups to fetch (list or comma-separated string).
      - pid_file: Optional named pid file for process metrics.
      - cache_version: Reuse the detected schema generation across scrapes.
    """

    model_config = ConfigDict(extra="forbid")

    stats_uri: str = Field(default="http://localhost:8053/", min_length=1)
    timeout: float = Field(default=10.0, gt=0)
    metrics: List[str] = Field(default_factory=lambda: list(DEFAULT_GROUPS))
    pid_file: Optional[str] = Field(default=None)
    cache_version: bool = Field(default=False)

    @field_validator("timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, v):
        return parse_duration(v)

    @field_validator("metrics", mode="before")
    @classmethod
    def _split_metrics(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            return v
        groups = [str(g).strip() for g in v if str(g).strip()]
        if not groups:
            raise ValueError("at least one metric group is required")
        return groups


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    listen_address: str = Field(default=":9119")
    telemetry_path: str = Field(default="/metrics")

    @field_validator("listen_address")
    @classmethod
    def _check_listen_address(cls, v: str) -> str:
        parse_listen_address(v)
        return v

    @field_validator("telemetry_path")
    @classmethod
    def _check_path(cls, v: str) -> str:
        if not v.startswith("/") or v == "/":
            raise ValueError("telemetry_path must start with '/' and not be '/'")
        return v


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="info")
    stderr: bool = Field(default=True)
    file: Optional[str] = Field(default=None)
    syslog: Union[bool, Dict[str, Any]] = Field(default=False)


class ExporterConfig(BaseModel):
    """Top-level configuration: ``bind``, ``web`` and ``logging`` sections."""

    model_config = ConfigDict(extra="forbid")

    bind: BindConfig = Field(default_factory=BindConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_config(
    raw: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ExporterConfig:
    """Brief: Merge CLI overrides onto a raw mapping and validate it.

    Inputs:
      - raw: Parsed YAML mapping (may be None).
      - overrides: Nested mapping of values that take precedence over raw.

    Outputs:
      - ExporterConfig.

    Raises:
      - ValueError: when the merged mapping fails validation.
    """

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration root must be a mapping")
    merged = _deep_merge(raw, overrides or {})
    try:
        return ExporterConfig.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def parse_config_file(
    config_path: Optional[str],
    overrides: Optional[Dict[str, Any]] = None,
) -> ExporterConfig:
    """Brief: Read a YAML config file (if given) and validate it with overrides.

    Inputs:
      - config_path: Path to the YAML file, or None for defaults only.
      - overrides: Nested CLI overrides.

    Outputs:
      - ExporterConfig.

    Raises:
      - OSError: when the file cannot be read.
      - ValueError: on YAML syntax errors or schema validation failures.
    """

    raw: Dict[str, Any] = {}
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc
    return build_config(raw, overrides)
