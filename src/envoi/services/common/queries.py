"""SQL for the two cache tables.

Every statement used against ``name_cache`` and ``address_cache`` lives
here. Each function takes a [Brotr][envoi.core.brotr.Brotr] and works in
terms of [CacheEntry][envoi.models.cache_entry.CacheEntry].

Upserts are last-write-wins on ``updated_at``: a row is only overwritten
by a write that is at least as recent, so a slow concurrent writer cannot
roll a fresher entry back.

See Also:
    [BrotrCacheStore][envoi.services.common.store.BrotrCacheStore]: The
        only caller; it maps driver failures onto
        [CacheStoreError][envoi.core.exceptions.CacheStoreError].
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from envoi.models.cache_entry import CacheEntry, CacheEntryDbParams
from envoi.models.constants import Direction


if TYPE_CHECKING:
    from envoi.core.brotr import Brotr

logger = logging.getLogger(__name__)


_SELECT: Final[dict[Direction, str]] = {
    Direction.FORWARD: """
        SELECT name AS key, address AS value, updated_at
        FROM name_cache
        WHERE name = $1
    """,
    Direction.REVERSE: """
        SELECT address AS key, name AS value, updated_at
        FROM address_cache
        WHERE address = $1
    """,
}

_UPSERT: Final[dict[Direction, str]] = {
    Direction.FORWARD: """
        INSERT INTO name_cache (name, address, updated_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (name) DO UPDATE
        SET address = EXCLUDED.address, updated_at = EXCLUDED.updated_at
        WHERE name_cache.updated_at <= EXCLUDED.updated_at
    """,
    Direction.REVERSE: """
        INSERT INTO address_cache (address, name, updated_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (address) DO UPDATE
        SET name = EXCLUDED.name, updated_at = EXCLUDED.updated_at
        WHERE address_cache.updated_at <= EXCLUDED.updated_at
    """,
}


async def fetch_cache_entry(brotr: Brotr, direction: Direction, key: str) -> CacheEntry | None:
    """Return the cached row for *key*, or ``None`` if there is none.

    A row that fails model validation is logged and treated as absent so
    the caller falls through to a fresh resolution that overwrites it.
    """
    row = await brotr.fetchrow(_SELECT[direction], key)
    if row is None:
        return None
    try:
        return CacheEntry.from_db_params(
            direction,
            CacheEntryDbParams(key=row["key"], value=row["value"], updated_at=row["updated_at"]),
        )
    except (ValueError, TypeError) as e:
        logger.warning("Skipping invalid %s cache row %s: %s", direction, key, e)
        return None


async def upsert_cache_entry(brotr: Brotr, entry: CacheEntry) -> None:
    """Insert or refresh one row in the table selected by ``entry.direction``."""
    await brotr.execute(_UPSERT[entry.direction], *entry.to_db_params())
