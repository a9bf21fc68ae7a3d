from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List

from prometheus_client import CollectorRegistry

from .collector import BindCollector
from .config.config_parser import ExporterConfig, parse_config_file
from .config.logging_config import init_logging
from .process import PidFileProcessCollector
from .servers.webserver import create_app, run_webserver


def build_parser() -> argparse.ArgumentParser:
    """Return the CLI parser; every flag overrides the matching config key."""

    parser = argparse.ArgumentParser(
        description="Prometheus exporter for BIND statistics channels"
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        help="Address to listen on for web interface and telemetry (default :9119).",
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        help="Path under which to expose metrics (default /metrics).",
    )
    parser.add_argument(
        "--bind.statsuri",
        dest="stats_uri",
        help="HTTP XML API address of a BIND server (default http://localhost:8053/).",
    )
    parser.add_argument(
        "--bind.timeout",
        dest="timeout",
        help="Timeout for trying to get stats from BIND, e.g. 10s (default 10s).",
    )
    parser.add_argument(
        "--bind.metrics",
        dest="metrics",
        help=(
            "Comma-separated metric groups to fetch (v3 only; available: status, "
            "mem, server, net, zones, tasks). Default mem,server,net,zones."
        ),
    )
    parser.add_argument(
        "--bind.pid-file",
        dest="pid_file",
        help="Path to BIND's pid file to export process information.",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        help="Log level: debug, info, warn, error, crit.",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Brief: Convert parsed CLI flags into a nested config override mapping.

    Inputs:
      - args: Namespace from build_parser().parse_args().

    Outputs:
      - dict with only the sections/keys that were given on the command line.

    Example:
      >>> ns = build_parser().parse_args(["--bind.statsuri", "http://ns1:8053/"])
      >>> cli_overrides(ns)
      {'bind': {'stats_uri': 'http://ns1:8053/'}}
    """

    sections = {
        "bind": ("stats_uri", "timeout", "metrics", "pid_file"),
        "web": ("listen_address", "telemetry_path"),
    }
    out: Dict[str, Any] = {}
    for section, keys in sections.items():
        for key in keys:
            value = getattr(args, key, None)
            if value is not None:
                out.setdefault(section, {})[key] = value
    if getattr(args, "log_level", None) is not None:
        out.setdefault("logging", {})["level"] = args.log_level
    return out


def build_registry(config: ExporterConfig) -> CollectorRegistry:
    """Brief: Register the BIND collector (and process collector) on a new registry.

    Inputs:
      - config: Validated ExporterConfig.

    Outputs:
      - CollectorRegistry ready for generate_latest().
    """

    registry = CollectorRegistry()
    registry.register(
        BindCollector(
            config.bind.stats_uri,
            config.bind.metrics,
            timeout=config.bind.timeout,
            cache_version=config.bind.cache_version,
        )
    )
    if config.bind.pid_file:
        PidFileProcessCollector(config.bind.pid_file, registry=registry)
    return registry


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the exporter.
    Parses arguments, loads configuration, and serves metrics until stopped.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        bind-exporter --bind.statsuri http://localhost:8053/ --bind.timeout 5s
    """
    args = build_parser().parse_args(argv)

    try:
        config = parse_config_file(args.config, cli_overrides(args))
    except (OSError, ValueError) as exc:
        print(str(exc))
        return 1

    init_logging(config.logging.model_dump())
    logger = logging.getLogger("bind_exporter.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)
    logger.info(
        "Scraping %s (timeout %gs, groups %s)",
        config.bind.stats_uri,
        config.bind.timeout,
        ",".join(config.bind.metrics),
    )

    registry = build_registry(config)
    app = create_app(registry, config.web.telemetry_path)
    run_webserver(app, config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
