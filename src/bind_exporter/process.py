"""Process resource metrics for the named daemon, located via its pid file."""

from __future__ import annotations

import logging
from typing import Iterable

from prometheus_client import CollectorRegistry, ProcessCollector
from prometheus_client.core import Metric

from .mapping import NAMESPACE

logger = logging.getLogger(__name__)


def read_pid_file(path: str) -> int:
    """Brief: Read a pid from ``path``.

    Inputs:
      - path: Pid file written by named (``pid-file`` option).

    Outputs:
      - int pid.

    Raises:
      - OSError: when the file cannot be read.
      - ValueError: when the contents are not an integer.
    """

    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    try:
        return int(content.strip())
    except ValueError:
        raise ValueError(f"Can't parse pid file {path}: {content.strip()!r}") from None


class PidFileProcessCollector(ProcessCollector):
    """Brief: ProcessCollector that re-reads the pid file on every scrape.

    Inputs (constructor):
      - pid_file: Path to named's pid file.
      - registry: Registry to register with (None to skip registration).

    Outputs:
      - Collector exporting ``bind_process_*`` metrics. An unreadable or
        malformed pid file is logged and yields no samples for that scrape.
    """

    def __init__(self, pid_file: str, registry: CollectorRegistry | None = None) -> None:
        self.pid_file = pid_file
        super().__init__(
            namespace=NAMESPACE, pid=lambda: read_pid_file(pid_file), registry=registry
        )

    def collect(self) -> Iterable[Metric]:
        try:
            return super().collect()
        except (OSError, ValueError) as exc:
            logger.warning("Can't read pid file %s: %s", self.pid_file, exc)
            return []
