"""Configuration and logging setup for bind_exporter."""

from .config_parser import (
    BindConfig,
    ExporterConfig,
    LoggingConfig,
    WebConfig,
    build_config,
    parse_config_file,
    parse_duration,
    parse_listen_address,
)
from .logging_config import init_logging

__all__ = [
    "BindConfig",
    "ExporterConfig",
    "LoggingConfig",
    "WebConfig",
    "build_config",
    "init_logging",
    "parse_config_file",
    "parse_duration",
    "parse_listen_address",
]
