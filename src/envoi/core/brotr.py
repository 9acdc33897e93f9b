"""
Database facade shared by every envoi service.

[Brotr][envoi.core.brotr.Brotr] wraps a private [Pool][envoi.core.pool.Pool]
and applies per-category timeouts from
[BrotrTimeoutsConfig][envoi.core.brotr.BrotrTimeoutsConfig] to every call.
It holds no domain SQL: the cache queries live in
``envoi.services.common.queries`` and take a ``Brotr`` as their first
argument.
"""

from __future__ import annotations

from typing import Any

import asyncpg  # noqa: TC002
from pydantic import BaseModel, Field, field_validator

from .logger import Logger
from .pool import Pool, PoolConfig
from .yaml import load_yaml


_MIN_TIMEOUT_SECONDS = 0.1


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class BrotrTimeoutsConfig(BaseModel):
    """Client-side timeouts in seconds; ``None`` waits forever.

    ``query`` bounds cache reads, ``write`` bounds cache upserts.
    """

    query: float | None = Field(default=5.0, description="Read timeout (seconds, None=infinite)")
    write: float | None = Field(default=5.0, description="Write timeout (seconds, None=infinite)")

    @field_validator("query", "write", mode="after")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v < _MIN_TIMEOUT_SECONDS:
            raise ValueError(
                f"Timeout must be None (infinite) or >= {_MIN_TIMEOUT_SECONDS} seconds"
            )
        return v


class BrotrConfig(BaseModel):
    """Settings owned by the facade itself (the pool has its own)."""

    timeouts: BrotrTimeoutsConfig = Field(default_factory=BrotrTimeoutsConfig)


# ---------------------------------------------------------------------------
# Brotr Class
# ---------------------------------------------------------------------------


class Brotr:
    """Timeout-aware query facade over a connection pool.

    Example:
        ```python
        brotr = Brotr.from_yaml("config/brotr.yaml")

        async with brotr:
            await brotr.fetchrow("SELECT 1")
        ```
    """

    def __init__(
        self,
        pool: Pool | None = None,
        config: BrotrConfig | None = None,
    ) -> None:
        self._pool = pool or Pool()
        self._config = config or BrotrConfig()
        self._logger = Logger("brotr")

    @property
    def config(self) -> BrotrConfig:
        return self._config

    @property
    def pool_config(self) -> PoolConfig:
        return self._pool.config

    @property
    def is_connected(self) -> bool:
        return self._pool.is_connected

    @classmethod
    def from_yaml(cls, config_path: str) -> Brotr:
        """Build from a YAML file with a ``pool`` section and optional ``timeouts``."""
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Brotr:
        """Build from a mapping; the ``pool`` key configures the pool."""
        pool = Pool.from_dict(config_dict["pool"]) if "pool" in config_dict else None
        rest = {k: v for k, v in config_dict.items() if k != "pool"}
        return cls(pool=pool, config=BrotrConfig(**rest) if rest else None)

    # -------------------------------------------------------------------------
    # Query Facade
    # -------------------------------------------------------------------------

    def _read_timeout(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else self._config.timeouts.query

    def _write_timeout(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else self._config.timeouts.write

    async def fetchrow(
        self,
        query: str,
        *args: Any,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> asyncpg.Record | None:
        """Return the first row or ``None``. Defaults to ``timeouts.query``."""
        return await self._pool.fetchrow(query, *args, timeout=self._read_timeout(timeout))

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:  # noqa: ASYNC109
        """Run a write statement. Defaults to ``timeouts.write``."""
        return await self._pool.execute(query, *args, timeout=self._write_timeout(timeout))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        await self._pool.connect()
        self._logger.debug("session_started")

    async def close(self) -> None:
        self._logger.debug("session_ending")
        await self._pool.close()

    async def __aenter__(self) -> Brotr:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._pool.config.database
        return f"Brotr(host={db.host}, database={db.database}, connected={self._pool.is_connected})"
