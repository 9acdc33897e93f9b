"""
Prometheus metrics shared by all envoi services.

Metric objects are module-level singletons. [BaseService][envoi.core.base_service.BaseService]
records cycle outcomes on them automatically; services publish their own
values through ``set_gauge()`` and ``inc_counter()``.

```text
SERVICE_INFO              static metadata, set once at startup
SERVICE_GAUGE             point-in-time values        {service, name}
SERVICE_COUNTER           cumulative totals           {service, name}
CYCLE_DURATION_SECONDS    run() latency histogram     {service}
REQUEST_DURATION_SECONDS  HTTP latency histogram      {service, route}
```

[MetricsServer][envoi.core.metrics.MetricsServer] exposes the registry on a
separate aiohttp listener so scraping never competes with API traffic.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Prometheus endpoint settings. Disabled by default."""

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Metric Objects
# ---------------------------------------------------------------------------

SERVICE_INFO = Info("service", "Service information and metadata")

CYCLE_DURATION_SECONDS = Histogram(
    "cycle_duration_seconds",
    "Duration of service cycle in seconds",
    ["service"],
    buckets=(0.01, 0.1, 0.5, 1, 5, 10, 30, 60),
)

REQUEST_DURATION_SECONDS = Histogram(
    "request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["service", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

# Automatic names: consecutive_failures, last_cycle_timestamp (gauge);
# cycles_success, cycles_failed, errors_{type} (counter).
SERVICE_GAUGE = Gauge(
    "service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """aiohttp listener serving the default registry in exposition format.

    Example:
        ```python
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        ...
        await server.stop()
        ```
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the listener; a no-op when metrics are disabled.

        Raises:
            OSError: If the port cannot be bound.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        await web.TCPSite(runner, self._config.host, self._config.port).start()
        self._runner = runner

    async def stop(self) -> None:
        """Release the port. Safe to call when never started."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})
