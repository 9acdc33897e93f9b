"""
Async PostgreSQL connection pool built on asyncpg.

[Pool][envoi.core.pool.Pool] holds the ``asyncpg.Pool`` behind the
resolution cache. Opening it retries with backoff while PostgreSQL is
still coming up. A cache read or write that lands on a dropped connection
is retried on a fresh one; any other database error (a bad statement, a
constraint violation) surfaces on the first attempt.

Examples:
    ```python
    pool = Pool.from_yaml("config/brotr.yaml")

    async with pool:
        row = await pool.fetchrow("SELECT 1")
    ```

See Also:
    [Brotr][envoi.core.brotr.Brotr]: The facade services use instead of
        talking to the pool directly.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import AbstractAsyncContextManager
from typing import Any, Literal, cast

import asyncpg
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from .exceptions import DatabaseError
from .logger import Logger
from .yaml import load_yaml


_TRANSIENT_ERRORS = (asyncpg.InterfaceError, asyncpg.ConnectionDoesNotExistError)


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """Where the cache tables live.

    The password is never stored in YAML. It comes from the environment
    variable named by ``password_env``.
    """

    host: str = Field(default="localhost", min_length=1, description="Database hostname")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(default="envoi", min_length=1, description="Database name")
    user: str = Field(default="envoi", min_length=1, description="Database user")
    password_env: str = Field(
        default="ENVOI_DB_PASSWORD",  # pragma: allowlist secret
        min_length=1,
        description="Environment variable holding the database password",
    )
    password: SecretStr = Field(description="Database password (loaded from password_env)")

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        if isinstance(data, dict) and "password" not in data:
            env_var = data.get("password_env", "ENVOI_DB_PASSWORD")  # pragma: allowlist secret
            value = os.getenv(env_var)
            if not value:
                raise ValueError(f"{env_var} environment variable not set")
            data = {**data, "password": SecretStr(value)}
        return data


class PoolLimitsConfig(BaseModel):
    """How many connections the cache may hold open."""

    min_size: int = Field(default=1, ge=1, le=100, description="Minimum connections")
    max_size: int = Field(default=10, ge=1, le=200, description="Maximum connections")

    @model_validator(mode="after")
    def _check_bounds(self) -> PoolLimitsConfig:
        if self.max_size < self.min_size:
            raise ValueError(f"max_size ({self.max_size}) must be >= min_size ({self.min_size})")
        return self


class PoolTimeoutsConfig(BaseModel):
    acquisition: float = Field(default=10.0, ge=0.1, description="Connection acquisition timeout")


class PoolRetryConfig(BaseModel):
    """Exponential backoff, ``initial_delay * 2**attempt`` capped at ``max_delay``.

    Applies to opening the pool and to queries that hit a dropped connection.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts before giving up")
    initial_delay: float = Field(default=1.0, ge=0.0, description="First retry delay")
    max_delay: float = Field(default=10.0, ge=0.0, description="Retry delay ceiling")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        initial_delay = info.data.get("initial_delay", 1.0)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v

    def delay(self, attempt: int) -> float:
        return float(min(self.initial_delay * (2**attempt), self.max_delay))


class ServerSettingsConfig(BaseModel):
    """Per-connection session settings. ``statement_timeout`` is in ms, ``0`` disables it."""

    application_name: str = Field(default="envoi", description="Reported in pg_stat_activity")
    statement_timeout: int = Field(default=30_000, ge=0, description="Statement timeout (ms)")


class PoolConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig.model_validate({}))
    limits: PoolLimitsConfig = Field(default_factory=PoolLimitsConfig)
    timeouts: PoolTimeoutsConfig = Field(default_factory=PoolTimeoutsConfig)
    retry: PoolRetryConfig = Field(default_factory=PoolRetryConfig)
    server_settings: ServerSettingsConfig = Field(default_factory=ServerSettingsConfig)


# ---------------------------------------------------------------------------
# Pool Class
# ---------------------------------------------------------------------------


class Pool:
    """Async PostgreSQL connection pool.

    Created disconnected; call [connect()][envoi.core.pool.Pool.connect] or
    enter it as an async context manager.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        self._pool: asyncpg.Pool[asyncpg.Record] | None = None
        self._is_connected: bool = False
        self._connection_lock = asyncio.Lock()
        self._logger = Logger("pool")

    @classmethod
    def from_yaml(cls, config_path: str) -> Pool:
        """Build a disconnected pool from a YAML file."""
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Pool:
        """Build a disconnected pool from a mapping of ``PoolConfig`` fields."""
        return cls(config=PoolConfig(**config_dict))

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the asyncpg pool, retrying with backoff. No-op when already open.

        Raises:
            DatabaseError: If every attempt failed.
        """
        async with self._connection_lock:
            if self._is_connected:
                return

            db = self._config.database
            retry = self._config.retry
            self._logger.info(
                "connection_starting", host=db.host, port=db.port, database=db.database
            )

            attempt = 0
            while True:
                try:
                    self._pool = await self._create_pool()
                    break
                except (asyncpg.PostgresError, OSError, ConnectionError) as e:
                    attempt += 1
                    if attempt >= retry.max_attempts:
                        self._logger.error("connection_failed", attempts=attempt, error=str(e))
                        raise DatabaseError(
                            f"Failed to connect after {attempt} attempts: {e}"
                        ) from e
                    delay = retry.delay(attempt - 1)
                    self._logger.warning(
                        "connection_retry", attempt=attempt, delay=delay, error=str(e)
                    )
                    await asyncio.sleep(delay)

            self._is_connected = True
            self._logger.info("connection_established", attempts=attempt + 1)

    async def _create_pool(self) -> asyncpg.Pool[asyncpg.Record]:
        db = self._config.database
        limits = self._config.limits
        settings = self._config.server_settings
        return await asyncpg.create_pool(
            host=db.host,
            port=db.port,
            database=db.database,
            user=db.user,
            password=db.password.get_secret_value(),
            min_size=limits.min_size,
            max_size=limits.max_size,
            timeout=self._config.timeouts.acquisition,
            server_settings={
                "application_name": settings.application_name,
                "statement_timeout": str(settings.statement_timeout),
            },
        )

    async def close(self) -> None:
        """Close the pool. Safe to call more than once."""
        async with self._connection_lock:
            if self._pool is None:
                return
            try:
                await self._pool.close()
                self._logger.info("connection_closed")
            finally:
                self._pool = None
                self._is_connected = False

    # -------------------------------------------------------------------------
    # Connection Acquisition
    # -------------------------------------------------------------------------

    def acquire(self) -> AbstractAsyncContextManager[asyncpg.Connection[asyncpg.Record]]:
        """Borrow a connection for the duration of an ``async with`` block.

        Raises:
            RuntimeError: If the pool is not connected.
        """
        if not self._is_connected or self._pool is None:
            raise RuntimeError("Pool not connected. Call connect() first.")
        return cast(
            "AbstractAsyncContextManager[asyncpg.Connection[asyncpg.Record]]",
            self._pool.acquire(),
        )

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    async def _run(
        self,
        operation: Literal["fetchrow", "execute"],
        query: str,
        args: tuple[Any, ...],
        timeout: float | None,  # noqa: ASYNC109
    ) -> Any:
        """Run *operation* on a fresh connection, retrying dropped connections."""
        retry = self._config.retry

        for attempt in range(retry.max_attempts):
            try:
                async with self.acquire() as conn:
                    return await getattr(conn, operation)(query, *args, timeout=timeout)
            except _TRANSIENT_ERRORS as e:
                if attempt + 1 >= retry.max_attempts:
                    self._logger.error(
                        "query_failed", operation=operation, attempts=attempt + 1, error=str(e)
                    )
                    raise DatabaseError(
                        f"{operation} failed after {attempt + 1} attempts: {e}"
                    ) from e
                delay = retry.delay(attempt)
                self._logger.warning(
                    "query_retry",
                    operation=operation,
                    attempt=attempt + 1,
                    delay_s=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        raise RuntimeError("retry loop exited without a result")

    async def fetchrow(
        self,
        query: str,
        *args: Any,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> asyncpg.Record | None:
        return cast("asyncpg.Record | None", await self._run("fetchrow", query, args, timeout))

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:  # noqa: ASYNC109
        """Run a statement and return its status tag, e.g. ``"INSERT 0 1"``."""
        return cast("str", await self._run("execute", query, args, timeout))

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def config(self) -> PoolConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Pool:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._config.database
        return f"Pool(host={db.host}, database={db.database}, connected={self._is_connected})"
