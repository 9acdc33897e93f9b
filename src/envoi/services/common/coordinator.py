"""Cache-then-chain resolution that keeps both cache tables consistent.

For one key, [resolve_one()][envoi.services.common.coordinator.CacheCoordinator.resolve_one]:

1. reads the key's own table unless the caller bypasses the cache, and
   returns a fresh entry as-is (``cached=True``), known-absent included;
2. otherwise asks the [ChainResolver][envoi.services.common.chain.ChainResolver];
3. writes the answer, ``NULL`` for nothing, to its own table and mirrors a
   resolved pair into the other table via
   [dual_write()][envoi.services.common.store.CacheStore.dual_write];
4. returns the answer with ``cached=False``.

Entry age is ``floor(now - updated_at)`` clamped at zero, and an entry is
fresh while ``age < ttl``. A failing cache read degrades to a miss and a
failing write is logged; neither reaches the caller.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from envoi.core.exceptions import CacheStoreError, MalformedInputError
from envoi.core.logger import Logger
from envoi.models.constants import Direction
from envoi.models.name import normalize_name
from envoi.models.resolution import Resolution

from .stats import CacheStats
from .store import is_valid_key


if TYPE_CHECKING:
    from envoi.models.cache_entry import CacheEntry

    from .store import CacheStore


DEFAULT_TTL = 3600


class Resolver(Protocol):
    async def resolve_address_to_name(self, address: str) -> str: ...

    async def resolve_name_to_address(self, name: str) -> str: ...


class CacheCoordinator:
    """Bidirectional cache in front of a chain resolver.

    Args:
        store: Cache tables.
        resolver: Chain resolver; injected so tests can use a fake.
        ttl: Freshness window in seconds.
        clock: Returns the current Unix time in seconds.
        stats: Counters; shared with the resolver when both are built by
            the Api service.
    """

    def __init__(
        self,
        store: CacheStore,
        resolver: Resolver,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
        stats: CacheStats | None = None,
    ) -> None:
        if ttl < 0:
            raise ValueError("ttl must be non-negative")
        self._store = store
        self._resolver = resolver
        self._ttl = ttl
        self._clock = clock
        self._stats = stats if stats is not None else CacheStats()
        self._logger = Logger("cache_coordinator")

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @staticmethod
    def lookup_key(key: str, direction: Direction) -> str:
        """Validate *key* and return the form it is cached under.

        Raises:
            MalformedInputError: If *key* is not a well-formed name (forward)
                or address (reverse).
        """
        if not is_valid_key(key, direction):
            kind = "name" if direction is Direction.FORWARD else "address"
            raise MalformedInputError(f"malformed {kind}: {key!r}", key=key)
        return normalize_name(key) if direction is Direction.FORWARD else key

    async def resolve_one(
        self, key: str, direction: Direction, ignore_cache: bool = False
    ) -> Resolution:
        """Resolve one name or address.

        Raises:
            MalformedInputError: Before any I/O when *key* is malformed.
        """
        direction = Direction(direction)
        cache_key = self.lookup_key(key, direction)

        if ignore_cache:
            self._stats.bypassed += 1
        else:
            entry = await self._read(direction, cache_key)
            if entry is not None:
                age = entry.age(self._clock())
                if age < self._ttl:
                    self._stats.hits += 1
                    self._logger.debug("cache_hit", direction=direction, key=cache_key, age=age)
                    return Resolution(
                        key=key,
                        direction=direction,
                        value=entry.value,
                        cached=True,
                        age_seconds=age,
                        ttl=self._ttl,
                    )
            self._stats.misses += 1
            self._logger.debug("cache_miss", direction=direction, key=cache_key)

        value = await self._resolve(direction, cache_key) or None
        failures = await self._store.dual_write(
            direction, cache_key, value, int(self._clock())
        )
        self._stats.store_errors += failures

        return Resolution(
            key=key,
            direction=direction,
            value=value,
            cached=False,
            age_seconds=0,
            ttl=self._ttl,
        )

    async def _read(self, direction: Direction, key: str) -> CacheEntry | None:
        try:
            return await self._store.get(direction, key)
        except CacheStoreError as e:
            self._stats.store_errors += 1
            self._logger.warning("cache_read_failed", direction=direction, key=key, error=str(e))
            return None

    async def _resolve(self, direction: Direction, key: str) -> str:
        if direction is Direction.FORWARD:
            return await self._resolver.resolve_name_to_address(key)
        return await self._resolver.resolve_address_to_name(key)
