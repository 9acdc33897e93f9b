"""Unit tests for services.common.queries."""

from unittest.mock import AsyncMock, MagicMock

from envoi.core.brotr import Brotr
from envoi.models.address import ZERO_ADDRESS
from envoi.models.cache_entry import CacheEntry
from envoi.models.constants import Direction
from envoi.services.common.queries import fetch_cache_entry, upsert_cache_entry


NOW = 1_700_000_000


def _brotr(row: dict | None = None) -> MagicMock:
    brotr = MagicMock(spec=Brotr)
    brotr.fetchrow = AsyncMock(return_value=row)
    brotr.execute = AsyncMock(return_value="INSERT 0 1")
    return brotr


class TestFetchCacheEntry:
    async def test_forward_row(self) -> None:
        brotr = _brotr({"key": "alice.voi", "value": ZERO_ADDRESS, "updated_at": NOW})
        entry = await fetch_cache_entry(brotr, Direction.FORWARD, "alice.voi")
        assert entry == CacheEntry(Direction.FORWARD, "alice.voi", ZERO_ADDRESS, NOW)
        query, key = brotr.fetchrow.call_args.args
        assert "FROM name_cache" in query
        assert key == "alice.voi"

    async def test_reverse_queries_address_cache(self) -> None:
        brotr = _brotr({"key": ZERO_ADDRESS, "value": None, "updated_at": NOW})
        entry = await fetch_cache_entry(brotr, Direction.REVERSE, ZERO_ADDRESS)
        assert entry is not None
        assert entry.value is None
        assert "FROM address_cache" in brotr.fetchrow.call_args.args[0]

    async def test_missing_row(self) -> None:
        assert await fetch_cache_entry(_brotr(None), Direction.FORWARD, "ghost.voi") is None

    async def test_invalid_row_treated_as_absent(self) -> None:
        brotr = _brotr({"key": "alice.voi", "value": "", "updated_at": -5})
        assert await fetch_cache_entry(brotr, Direction.FORWARD, "alice.voi") is None


class TestUpsertCacheEntry:
    async def test_forward(self) -> None:
        brotr = _brotr()
        await upsert_cache_entry(brotr, CacheEntry(Direction.FORWARD, "alice.voi", None, NOW))
        query, *params = brotr.execute.call_args.args
        assert "INSERT INTO name_cache" in query
        assert "name_cache.updated_at <= EXCLUDED.updated_at" in query
        assert params == ["alice.voi", None, NOW]

    async def test_reverse(self) -> None:
        brotr = _brotr()
        await upsert_cache_entry(brotr, CacheEntry(Direction.REVERSE, ZERO_ADDRESS, "a.voi", NOW))
        query, *params = brotr.execute.call_args.args
        assert "INSERT INTO address_cache" in query
        assert params == [ZERO_ADDRESS, "a.voi", NOW]
