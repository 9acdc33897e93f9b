"""
Pytest configuration and shared fixtures for envoi tests.

Provides:
- Mock fixtures for asyncpg, Pool and Brotr
- An in-memory CacheStore and a scriptable chain lookup
- Well-formed sample addresses and a controllable clock
"""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from envoi.core.brotr import Brotr
from envoi.core.exceptions import CacheStoreError, ChainLookupError
from envoi.core.pool import DatabaseConfig, Pool, PoolConfig
from envoi.models.address import ZERO_ADDRESS, encode_address
from envoi.models.cache_entry import CacheEntry
from envoi.models.constants import Direction
from envoi.services.common.store import CacheStore
from envoi.utils.algod import ChainConfig


QUERY_ADDRESS = ZERO_ADDRESS

RESOLVER_APP_ID = 797609
REGISTRY_APP_ID = 797607

NOW = 1_700_000_000


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Database Mocks
# ============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Mock asyncpg connection."""
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_connection: MagicMock) -> MagicMock:
    """Mock asyncpg pool handing out ``mock_connection``."""
    pool = MagicMock()
    pool.close = AsyncMock()

    mock_acquire = MagicMock()
    mock_acquire.__aenter__ = AsyncMock(return_value=mock_connection)
    mock_acquire.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = MagicMock(return_value=mock_acquire)
    return pool


@pytest.fixture
def pool_config() -> PoolConfig:
    return PoolConfig(
        database=DatabaseConfig(
            host="localhost",
            port=5432,
            database="test_db",
            user="test_user",
            password="test_password",  # pragma: allowlist secret
        )
    )


@pytest.fixture
def mock_pool(mock_asyncpg_pool: MagicMock, pool_config: PoolConfig) -> Pool:
    """Connected Pool backed by ``mock_asyncpg_pool``."""
    pool = Pool(config=pool_config)
    pool._pool = mock_asyncpg_pool
    pool._is_connected = True
    return pool


@pytest.fixture
def mock_brotr(mock_pool: Pool) -> Brotr:
    return Brotr(pool=mock_pool)


# ============================================================================
# Cache and Chain Fakes
# ============================================================================


class InMemoryCacheStore(CacheStore):
    """Dict-backed CacheStore that records every call."""

    def __init__(self) -> None:
        super().__init__()
        self.tables: dict[Direction, dict[str, CacheEntry]] = {
            Direction.FORWARD: {},
            Direction.REVERSE: {},
        }
        self.reads: list[tuple[Direction, str]] = []
        self.writes: list[CacheEntry] = []
        self.fail_reads = False
        self.fail_writes_for: set[Direction] = set()

    def seed(self, direction: Direction, key: str, value: str | None, updated_at: int) -> None:
        entry = CacheEntry(direction=direction, key=key, value=value, updated_at=updated_at)
        self.tables[direction][entry.key] = entry

    def value(self, direction: Direction, key: str) -> str | None:
        return self.tables[direction][key].value

    async def get(self, direction: Direction, key: str) -> CacheEntry | None:
        self.reads.append((direction, key))
        if self.fail_reads:
            raise CacheStoreError("read failed")
        return self.tables[direction].get(key)

    async def upsert(self, entry: CacheEntry) -> None:
        if entry.direction in self.fail_writes_for:
            raise CacheStoreError("write failed")
        self.writes.append(entry)
        current = self.tables[entry.direction].get(entry.key)
        if current is None or current.updated_at <= entry.updated_at:
            self.tables[entry.direction][entry.key] = entry


class FakeChainLookup:
    """ChainLookup answering from dicts keyed by storage key / token id.

    ``boxes`` maps storage keys to raw box contents and ``owners`` maps
    ARC-72 token ids to owner addresses. Setting ``error`` makes every call
    raise it.
    """

    def __init__(self) -> None:
        self.boxes: dict[bytes, bytes] = {}
        self.owners: dict[int, str] = {}
        self.error: Exception | None = None
        self.box_calls: list[tuple[int, bytes]] = []
        self.owner_calls: list[tuple[int, int]] = []

    async def get_by_storage_key(self, app_id: int, key: bytes) -> bytes | None:
        self.box_calls.append((app_id, key))
        if self.error is not None:
            raise self.error
        return self.boxes.get(key)

    async def get_owner_of_digest(self, app_id: int, digest: int) -> str | None:
        self.owner_calls.append((app_id, digest))
        if self.error is not None:
            raise self.error
        return self.owners.get(digest)

    @property
    def calls(self) -> int:
        return len(self.box_calls) + len(self.owner_calls)


class Clock:
    """Settable replacement for ``time.time``."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def memory_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def fake_lookup() -> FakeChainLookup:
    return FakeChainLookup()


@pytest.fixture
def failing_lookup() -> FakeChainLookup:
    lookup = FakeChainLookup()
    lookup.error = ChainLookupError("node unreachable")
    return lookup


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def alice_address() -> str:
    return encode_address(bytes([1]) * 32)


@pytest.fixture
def bob_address() -> str:
    return encode_address(bytes([2]) * 32)


@pytest.fixture
def chain_config_dict() -> dict[str, Any]:
    return {
        "url": "http://algod.test/",
        "resolver_app_id": RESOLVER_APP_ID,
        "registry_app_id": REGISTRY_APP_ID,
        "query_address": QUERY_ADDRESS,
        "timeout": 1.0,
        "retry": {"max_attempts": 2, "initial_delay": 0.0, "max_delay": 0.0},
    }


@pytest.fixture
def chain_config(chain_config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch) -> ChainConfig:
    monkeypatch.delenv("ALGOD_TOKEN", raising=False)
    return ChainConfig(**chain_config_dict)
