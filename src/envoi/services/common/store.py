"""Cache store abstraction and its PostgreSQL implementation.

[CacheStore][envoi.services.common.store.CacheStore] is what the
coordinator depends on: point reads, single upserts, and
[dual_write()][envoi.services.common.store.CacheStore.dual_write], the one
place that keeps ``name_cache`` and ``address_cache`` in step.

The two tables are updated by two independent upserts. There is no
transaction spanning them: if one write fails the other still happens,
and the failure is logged and counted rather than raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import asyncpg

from envoi.core.exceptions import CacheStoreError, DatabaseError
from envoi.core.logger import Logger
from envoi.models.address import is_address
from envoi.models.cache_entry import CacheEntry
from envoi.models.constants import Direction
from envoi.models.name import is_valid_name

from .queries import fetch_cache_entry, upsert_cache_entry


if TYPE_CHECKING:
    from envoi.core.brotr import Brotr


def is_valid_key(key: object, direction: Direction) -> bool:
    """Whether *key* may be used as a cache key for *direction*."""
    if direction is Direction.FORWARD:
        return is_valid_name(key)
    return is_address(key)


class CacheStore(ABC):
    """Two key/value tables with point lookup and upsert."""

    def __init__(self) -> None:
        self._logger = Logger("cache_store")

    @abstractmethod
    async def get(self, direction: Direction, key: str) -> CacheEntry | None:
        """Return the entry for *key* or ``None``.

        Raises:
            CacheStoreError: If the read failed.
        """

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        """Insert or refresh *entry* in its table.

        Raises:
            CacheStoreError: If the write failed.
        """

    async def dual_write(
        self,
        direction: Direction,
        key: str,
        value: str | None,
        updated_at: int,
    ) -> int:
        """Record a fresh resolution in its own table and mirror it.

        The own-direction row is always written, with ``value=None`` for a
        known-absent key. When a value was resolved and is itself a valid
        key for the opposite direction, the mirrored row
        ``(value -> key)`` is written to the other table.

        Returns:
            The number of writes that failed (0, 1 or 2).
        """
        failures = 0
        entry = CacheEntry(direction=direction, key=key, value=value, updated_at=updated_at)
        if not await self._write(entry):
            failures += 1

        mirrored = entry.mirrored()
        if mirrored is not None and is_valid_key(mirrored.key, mirrored.direction):
            if not await self._write(mirrored):
                failures += 1
        elif mirrored is not None:
            self._logger.warning(
                "cache_mirror_skipped", direction=mirrored.direction, key=mirrored.key
            )
        return failures

    async def _write(self, entry: CacheEntry) -> bool:
        try:
            await self.upsert(entry)
        except CacheStoreError as e:
            self._logger.warning(
                "cache_write_failed", direction=entry.direction, key=entry.key, error=str(e)
            )
            return False
        return True


class BrotrCacheStore(CacheStore):
    """[CacheStore][envoi.services.common.store.CacheStore] on PostgreSQL via Brotr."""

    _DRIVER_ERRORS = (
        asyncpg.PostgresError,
        asyncpg.InterfaceError,
        DatabaseError,
        OSError,
        TimeoutError,
    )

    def __init__(self, brotr: Brotr) -> None:
        super().__init__()
        self._brotr = brotr

    async def get(self, direction: Direction, key: str) -> CacheEntry | None:
        try:
            return await fetch_cache_entry(self._brotr, direction, key)
        except self._DRIVER_ERRORS as e:
            raise CacheStoreError(f"reading {direction.table} failed: {e}") from e

    async def upsert(self, entry: CacheEntry) -> None:
        try:
            await upsert_cache_entry(self._brotr, entry)
        except self._DRIVER_ERRORS as e:
            raise CacheStoreError(f"writing {entry.direction.table} failed: {e}") from e
