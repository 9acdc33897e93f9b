"""HTTP lookup service for names and addresses via FastAPI.

Routes (``{prefix}`` is ``route_prefix``, ``/api`` by default):

```text
GET  {prefix}/address/{name}      name -> address; "a.voi,b.voi" is a batch
POST {prefix}/address             {"names": [...], "ignoreCache": false}
GET  {prefix}/name/{address}      address -> name; comma-separated batch
POST {prefix}/name                {"addresses": [...], "ignoreCache": false}
GET  /health
```

GET routes take ``?ignoreCache=true`` to bypass the cache. Responses carry
``X-Cache`` (``HIT``/``MISS``/``BYPASS`` for single lookups, the batch state for
batches) and a ``Cache-Control`` window never longer than the remaining
freshness of the data returned.

The HTTP server runs as a background ``asyncio.Task`` alongside the
standard ``run_forever()`` cycle. Each ``run()`` cycle logs request and
cache statistics and publishes them as Prometheus counters.

See Also:
    [CacheCoordinator][envoi.services.common.coordinator.CacheCoordinator]:
        Single lookups.
    [BatchOrchestrator][envoi.services.common.batch.BatchOrchestrator]:
        Batch lookups.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from envoi.core.base_service import BaseService
from envoi.core.exceptions import MalformedInputError
from envoi.core.metrics import REQUEST_DURATION_SECONDS
from envoi.models.address import is_address
from envoi.models.constants import BatchState, Direction, ServiceName
from envoi.models.name import has_tld, is_valid_name
from envoi.services.common.batch import BatchOrchestrator
from envoi.services.common.chain import ChainResolver
from envoi.services.common.coordinator import CacheCoordinator
from envoi.services.common.stats import CacheStats
from envoi.services.common.store import BrotrCacheStore
from envoi.utils.algod import AlgodClient

from .configs import ApiConfig


if TYPE_CHECKING:
    from types import TracebackType

    from envoi.core.brotr import Brotr
    from envoi.models.resolution import BatchResolution, Resolution
    from envoi.services.common.store import CacheStore
    from envoi.utils.algod import ChainLookup

_HTTP_ERROR_THRESHOLD = 400

# Per-direction wording: (body list field, singular, plural)
_NOUNS: dict[Direction, tuple[str, str, str]] = {
    Direction.FORWARD: ("names", "name", "names"),
    Direction.REVERSE: ("addresses", "address", "addresses"),
}


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


class Api(BaseService[ApiConfig]):
    """Name and address lookup API.

    Lifecycle:
        1. ``__aenter__``: open the chain client, build the FastAPI app,
           start uvicorn.
        2. ``run()``: log statistics and update Prometheus counters.
        3. ``__aexit__``: stop the HTTP server, close the chain client.

    Args:
        brotr: Database facade backing the cache tables.
        config: Service configuration; required because the chain section
            has no defaults.
        lookup: Chain capability. Defaults to an
            [AlgodClient][envoi.utils.algod.AlgodClient] owned by the service.
        store: Cache store. Defaults to
            [BrotrCacheStore][envoi.services.common.store.BrotrCacheStore].
        clock: Unix-time source for cache freshness.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.API
    CONFIG_CLASS: ClassVar[type[ApiConfig]] = ApiConfig

    def __init__(
        self,
        brotr: Brotr,
        config: ApiConfig | None = None,
        *,
        lookup: ChainLookup | None = None,
        store: CacheStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(brotr, config)
        self._algod: AlgodClient | None = None
        if lookup is None:
            self._algod = AlgodClient(self._config.chain)
            lookup = self._algod

        self._stats = CacheStats()
        self._store = store if store is not None else BrotrCacheStore(brotr)
        self._coordinator = CacheCoordinator(
            self._store,
            ChainResolver.from_config(lookup, self._config.chain, stats=self._stats),
            ttl=self._config.cache.ttl,
            clock=clock,
            stats=self._stats,
        )
        self._batch = BatchOrchestrator(
            self._coordinator, max_concurrency=self._config.cache.max_concurrency
        )
        self._server_task: asyncio.Task[None] | None = None
        self._requests_total = 0
        self._requests_failed = 0

    @property
    def coordinator(self) -> CacheCoordinator:
        return self._coordinator

    async def __aenter__(self) -> Api:
        await super().__aenter__()
        if self._algod is not None:
            await self._algod.open()

        app = self._build_app()
        self._server_task = asyncio.create_task(self._run_server(app))
        self._logger.info(
            "http_server_started",
            host=self._config.host,
            port=self._config.port,
            route_prefix=self._config.route_prefix,
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._server_task is not None:
            self._server_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._server_task
            self._server_task = None
        self._logger.info("http_server_stopped")
        if self._algod is not None:
            await self._algod.close()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Log request and cache stats and publish them as counters."""
        if self._server_task is not None and self._server_task.done():
            exc = self._server_task.exception() if not self._server_task.cancelled() else None
            self._logger.error("http_server_crashed", error=str(exc) if exc else "cancelled")
            raise RuntimeError("HTTP server task has stopped unexpectedly") from exc

        total = self._requests_total
        failed = self._requests_failed
        self._requests_total = 0
        self._requests_failed = 0
        cache = self._stats.snapshot()

        self._logger.info("cycle_stats", requests_total=total, requests_failed=failed, **cache)
        self.inc_counter("requests_total", total)
        self.inc_counter("requests_failed", failed)
        for name, value in cache.items():
            self.inc_counter(f"cache_{name}", value)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        """Construct the FastAPI application."""
        app = FastAPI(title="envoi resolver")

        if self._config.cors_origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self._config.cors_origins,
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
                expose_headers=["X-Cache"],
            )

        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            start = time.monotonic()
            try:
                response: Response = await call_next(request)
            except Exception as exc:  # HTTP request error boundary
                self._logger.error("unhandled_error", error=str(exc), path=request.url.path)
                response = _error("Internal server error", 500)
            duration = time.monotonic() - start
            self._requests_total += 1
            if self._config.metrics.enabled:
                route = getattr(request.scope.get("route"), "path", "unmatched")
                REQUEST_DURATION_SECONDS.labels(service=self.SERVICE_NAME, route=route).observe(
                    duration
                )
            fields = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration * 1000, 1),
            }
            if response.status_code >= _HTTP_ERROR_THRESHOLD:
                self._requests_failed += 1
                self._logger.warning("request_failed", **fields)
            else:
                self._logger.info("request_completed", **fields)
            return response

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        prefix = self._config.route_prefix

        @app.get(f"{prefix}/address/{{name}}")
        async def get_address(name: str, request: Request) -> JSONResponse:
            return await self._handle_path(name, Direction.FORWARD, request)

        @app.post(f"{prefix}/address")
        async def post_address(request: Request) -> JSONResponse:
            return await self._handle_body(Direction.FORWARD, request)

        @app.get(f"{prefix}/name/{{address}}")
        async def get_name(address: str, request: Request) -> JSONResponse:
            return await self._handle_path(address, Direction.REVERSE, request)

        @app.post(f"{prefix}/name")
        async def post_name(request: Request) -> JSONResponse:
            return await self._handle_body(Direction.REVERSE, request)

        return app

    # -------------------------------------------------------------------------
    # Request Handling
    # -------------------------------------------------------------------------

    async def _handle_path(self, value: str, direction: Direction, request: Request) -> JSONResponse:
        ignore_cache = request.query_params.get("ignoreCache") == "true"
        if "," in value:
            return await self._batch_response(value.split(","), direction, ignore_cache)
        return await self._single_response(value, direction, ignore_cache)

    async def _handle_body(self, direction: Direction, request: Request) -> JSONResponse:
        field, _, _ = _NOUNS[direction]
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error("Invalid JSON body", 400)
        if not isinstance(body, dict):
            return _error("Request body must be a JSON object", 400)
        return await self._batch_response(
            body.get(field), direction, body.get("ignoreCache") is True
        )

    def _validate(self, keys: list[str], direction: Direction, *, batch: bool) -> str | None:
        """Return the error message if any key is malformed, else ``None``."""
        if direction is Direction.REVERSE:
            if not all(is_address(k) for k in keys):
                return "Invalid Algorand address format"
            return None

        tld = self._config.tld
        if not all(is_valid_name(k) and has_tld(k, tld) for k in keys):
            subject = "Names" if batch else "Name"
            return f"Invalid name format. {subject} must end with .{tld}"
        return None

    async def _single_response(
        self, key: str, direction: Direction, ignore_cache: bool
    ) -> JSONResponse:
        _, singular, _ = _NOUNS[direction]
        if not key:
            return _error(f"{singular.capitalize()} parameter is required", 400)
        if (message := self._validate([key], direction, batch=False)) is not None:
            return _error(message, 400)

        try:
            result: Resolution = await asyncio.wait_for(
                self._coordinator.resolve_one(key, direction, ignore_cache),
                timeout=self._config.request_timeout,
            )
        except TimeoutError:
            return _error("Request timeout", 504)
        except MalformedInputError as e:
            return _error(str(e), 400)

        if result.value is None:
            return _error(f"{singular.capitalize()} not found", 404)

        if ignore_cache:
            cache_control = "no-store"
            state = BatchState.BYPASS
        else:
            cache_control = f"public, max-age={result.ttl_remaining}"
            state = BatchState.HIT if result.cached else BatchState.MISS
        return JSONResponse(
            {"results": [result.to_dict()]},
            headers={
                "Cache-Control": cache_control,
                "X-Cache": state,
            },
        )

    async def _batch_response(
        self, keys: Any, direction: Direction, ignore_cache: bool
    ) -> JSONResponse:
        field, _, plural = _NOUNS[direction]
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            return _error(f"{field.capitalize()} must be an array", 400)
        if len(keys) > self._config.max_batch_size:
            return _error(f"Maximum {self._config.max_batch_size} {plural} per request", 400)
        if (message := self._validate(keys, direction, batch=True)) is not None:
            return _error(message, 400)

        try:
            batch: BatchResolution = await asyncio.wait_for(
                self._batch.resolve_batch(keys, direction, ignore_cache),
                timeout=self._config.request_timeout,
            )
        except TimeoutError:
            return _error("Request timeout", 504)
        except MalformedInputError as e:
            return _error(str(e), 400)

        if batch.state is BatchState.BYPASS:
            cache_control = "no-store"
        else:
            cache_control = f"public, max-age={batch.max_age}"
        return JSONResponse(
            {"results": [r.to_dict() for r in batch.results]},
            headers={"Cache-Control": cache_control, "X-Cache": batch.state},
        )

    async def _run_server(self, app: FastAPI) -> None:
        """Run uvicorn as an asyncio server."""
        config = uvicorn.Config(
            app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        await uvicorn.Server(config).serve()
