"""HTTP listener exposing the Prometheus metrics page.

This module provides a small FastAPI application serving the exposition
format from a prometheus_client CollectorRegistry, plus helpers to run it
under uvicorn.
"""

from __future__ import annotations

import importlib.metadata as importlib_metadata
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from ..config.config_parser import ExporterConfig, parse_listen_address

try:
    EXPORTER_VERSION = importlib_metadata.version("bind_exporter")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - source checkout
    EXPORTER_VERSION = "unknown"

logger = logging.getLogger("bind_exporter.webserver")

_INDEX_TEMPLATE = """<html>
<head><title>Bind Exporter</title></head>
<body>
<h1>Bind Exporter</h1>
<p><a href='{path}'>Metrics</a></p>
</body>
</html>
"""


class _Suppress2xxAccessFilter(logging.Filter):
    """Logging filter that drops uvicorn access records for HTTP 2xx responses.

    Prometheus scrapes on a fixed interval, so successful requests would
    otherwise dominate the log.

    Inputs:
      - record: logging.LogRecord instance from uvicorn.access or other loggers.

    Outputs:
      - bool: False for records that clearly correspond to HTTP 2xx status codes,
        True otherwise (including when no status code can be determined).

    Example:
      >>> access_logger = logging.getLogger("uvicorn.access")
      >>> access_logger.addFilter(_Suppress2xxAccessFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        status = getattr(record, "status_code", None)

        # uvicorn passes (client, method, path, http_version, status_code)
        if status is None:
            args = getattr(record, "args", None)
            if isinstance(args, dict):
                status = args.get("status_code") or args.get("status")
            elif isinstance(args, (tuple, list)) and args:
                status = args[-1]

        try:
            code = int(status)
        except (TypeError, ValueError):
            return True

        return not (200 <= code <= 299)


def install_uvicorn_2xx_suppression() -> None:
    """Attach _Suppress2xxAccessFilter to the uvicorn.access logger once."""

    access_logger = logging.getLogger("uvicorn.access")
    for f in getattr(access_logger, "filters", []):
        if isinstance(f, _Suppress2xxAccessFilter):
            return
    access_logger.addFilter(_Suppress2xxAccessFilter())


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(registry: CollectorRegistry, telemetry_path: str = "/metrics") -> FastAPI:
    """Create the FastAPI app serving metrics from ``registry``.

    Inputs:
      - registry: CollectorRegistry holding the BIND collector (and optionally
        the process collector).
      - telemetry_path: Path under which the exposition is served.

    Outputs:
      - FastAPI application with ``/``, ``/health`` and ``telemetry_path``.

    Example:
      >>> from prometheus_client import CollectorRegistry
      >>> app = create_app(CollectorRegistry(), "/metrics")
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        install_uvicorn_2xx_suppression()
        yield

    app = FastAPI(title="Bind Exporter", version=EXPORTER_VERSION, lifespan=lifespan)
    app.state.registry = registry
    app.state.telemetry_path = telemetry_path

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return _INDEX_TEMPLATE.format(path=telemetry_path)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        """Return simple liveness information for the exporter process itself."""

        return {"status": "ok", "server_time": _utc_now_iso()}

    # Plain def: scrapes block on upstream HTTP, so FastAPI runs this in its
    # threadpool and overlapping scrapes do not stall the event loop.
    def metrics() -> Response:
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(telemetry_path, metrics, methods=["GET"])
    return app


def run_webserver(app: FastAPI, config: ExporterConfig) -> None:
    """Brief: Serve ``app`` with uvicorn in the foreground until shutdown.

    Inputs:
      - app: Application from create_app().
      - config: ExporterConfig providing ``web.listen_address``.

    Outputs:
      - None; returns when uvicorn stops. uvicorn exits the process when the
        listen address cannot be bound.
    """

    import uvicorn

    host, port = parse_listen_address(config.web.listen_address)
    server = uvicorn.Server(
        uvicorn.Config(app, host=host, port=port, log_level="info", log_config=None)
    )
    logger.info("Starting Server: %s", config.web.listen_address)
    server.run()
