"""Unit tests for core.brotr."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from envoi.core.brotr import Brotr, BrotrConfig, BrotrTimeoutsConfig
from envoi.core.pool import Pool


class TestBrotrConfig:
    def test_defaults(self) -> None:
        timeouts = BrotrConfig().timeouts
        assert (timeouts.query, timeouts.write) == (5.0, 5.0)

    def test_none_is_infinite(self) -> None:
        assert BrotrTimeoutsConfig(query=None).query is None

    def test_too_small(self) -> None:
        with pytest.raises(ValidationError, match="Timeout must be None"):
            BrotrTimeoutsConfig(write=0.01)


class TestBrotr:
    def test_from_dict(self) -> None:
        brotr = Brotr.from_dict(
            {
                "pool": {"database": {"password": "pw", "database": "cache"}},  # pragma: allowlist secret
                "timeouts": {"query": 1.0},
            }
        )
        assert brotr.pool_config.database.database == "cache"
        assert brotr.config.timeouts.query == 1.0
        assert not brotr.is_connected

    async def test_read_timeout_applied(self, mock_brotr: Brotr, mock_connection: MagicMock) -> None:
        await mock_brotr.fetchrow("SELECT 1")
        assert mock_connection.fetchrow.call_args.kwargs["timeout"] == 5.0

    async def test_write_timeout_applied(self, mock_pool: Pool, mock_connection: MagicMock) -> None:
        brotr = Brotr(pool=mock_pool, config=BrotrConfig(timeouts=BrotrTimeoutsConfig(write=2.0)))
        await brotr.execute("INSERT", 1)
        assert mock_connection.execute.call_args.kwargs["timeout"] == 2.0

    async def test_explicit_timeout_wins(
        self, mock_brotr: Brotr, mock_connection: MagicMock
    ) -> None:
        await mock_brotr.fetchrow("SELECT 1", timeout=9.0)
        assert mock_connection.fetchrow.call_args.kwargs["timeout"] == 9.0

    async def test_context_manager(self) -> None:
        pool = MagicMock(spec=Pool)
        pool.connect = AsyncMock()
        pool.close = AsyncMock()
        async with Brotr(pool=pool):
            pool.connect.assert_awaited_once()
        pool.close.assert_awaited_once()

    def test_repr(self, mock_brotr: Brotr) -> None:
        assert repr(mock_brotr) == "Brotr(host=localhost, database=test_db, connected=True)"
