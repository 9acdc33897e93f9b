"""
Lifecycle shared by envoi services.

A service owns a named [Logger][envoi.core.logger.Logger] and a shutdown
event. [run_forever()][envoi.core.base_service.BaseService.run_forever]
calls the service's ``run()`` on a fixed interval and publishes cycle
outcomes through [inc_counter()][envoi.core.base_service.BaseService.inc_counter]
and [set_gauge()][envoi.core.base_service.BaseService.set_gauge]. The API
service uses each cycle to flush its request and cache statistics.

The expected nesting is ``async with brotr:`` then ``async with service:``
then ``run_forever()`` (or a single ``run()`` for ``--once``).
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


if TYPE_CHECKING:
    from types import TracebackType

    from envoi.models.constants import ServiceName

    from .brotr import Brotr


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Fields shared by every service config.

    Attributes:
        interval: Seconds between ``run()`` cycles.
        max_consecutive_failures: Stop the loop after this many failed
            cycles in a row; ``0`` never stops.
        metrics: Prometheus endpoint settings.
    """

    interval: float = Field(default=60.0, ge=1.0, description="Seconds between run cycles")
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Stop after this many consecutive errors (0 = unlimited)",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Prometheus metrics configuration",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base for all envoi services.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][envoi.core.base_service.BaseService.run].

    Attributes:
        SERVICE_NAME: Identifier used in log records and metric labels.
        CONFIG_CLASS: Pydantic model the factory methods parse into.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, brotr: Brotr, config: ConfigT | None = None) -> None:
        self._brotr = brotr
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        return self._config

    @abstractmethod
    async def run(self) -> None:
        """Perform one bounded unit of work and return."""
        ...

    def request_shutdown(self) -> None:
        """Ask the run loop to exit after the current cycle or wait."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep up to *timeout* seconds; return True if shutdown was requested."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def run_forever(self) -> None:
        """Call ``run()`` every ``config.interval`` seconds until shut down.

        A failed cycle is logged and counted, then the loop carries on,
        unless ``max_consecutive_failures`` failures have happened in a row.
        Cancellation and interpreter exit are never treated as a failure.
        """
        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})
        self._logger.info(
            "run_forever_started",
            interval=self._config.interval,
            max_consecutive_failures=self._config.max_consecutive_failures,
        )

        failures = 0
        while self.is_running:
            started = time.monotonic()
            try:
                await self.run()
            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise
            except Exception as e:  # a failed cycle must not kill the service
                failures += 1
                if self._record_failure(e, failures):
                    break
            else:
                failures = 0
                self._record_success(time.monotonic() - started)

            if await self.wait(self._config.interval):
                break

        self._logger.info("run_forever_stopped")

    def _record_success(self, elapsed: float) -> None:
        self.inc_counter("cycles_success")
        self.set_gauge("consecutive_failures", 0)
        self.set_gauge("last_cycle_timestamp", time.time())
        if self._config.metrics.enabled:
            CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(elapsed)
        self._logger.debug("cycle_completed", duration_s=round(elapsed, 3))

    def _record_failure(self, error: Exception, failures: int) -> bool:
        """Count a failed cycle; True when the failure limit has been hit."""
        self.inc_counter("cycles_failed")
        self.inc_counter(f"errors_{type(error).__name__}")
        self.set_gauge("consecutive_failures", failures)
        self._logger.error("run_cycle_error", error=str(error), consecutive_failures=failures)

        limit = self._config.max_consecutive_failures
        if limit and failures >= limit:
            self._logger.critical("max_consecutive_failures_reached", failures=failures, limit=limit)
            return True
        return False

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, brotr: Brotr, **kwargs: Any) -> Self:
        """Build the service from a YAML file parsed into ``CONFIG_CLASS``."""
        return cls.from_dict(load_yaml(config_path), brotr=brotr, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], brotr: Brotr, **kwargs: Any) -> Self:
        """Build the service from a mapping parsed into ``CONFIG_CLASS``."""
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(brotr=brotr, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Custom Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set ``service_gauge{service, name}``; no-op with metrics disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment ``service_counter{service, name}``; no-op with metrics disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)
