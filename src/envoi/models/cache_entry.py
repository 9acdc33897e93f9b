"""Cache table rows for forward and reverse lookups.

Two tables share one symmetric schema ``(key, value, updated_at)``:

```text
name_cache      name    -> address | NULL
address_cache   address -> name    | NULL
```

A ``NULL`` value records a name or address that is known to resolve to
nothing, so repeated misses stay off the chain for the TTL window.
Expiry is virtual: an entry is fresh while ``now - updated_at < ttl`` and
is never deleted by this package.

See Also:
    [BrotrCacheStore][envoi.services.common.store.BrotrCacheStore]: Reads
        and upserts these rows.
    [CacheCoordinator][envoi.services.common.coordinator.CacheCoordinator]:
        Decides freshness using [is_fresh()][envoi.models.cache_entry.CacheEntry.is_fresh].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple

from ._validation import validate_optional_str, validate_str_not_empty, validate_timestamp
from .constants import Direction
from .name import normalize_name


class CacheEntryDbParams(NamedTuple):
    """Positional parameters for the cache upsert queries.

    Column order matches ``(key, value, updated_at)`` in both
    ``name_cache`` and ``address_cache``.
    """

    key: str
    value: str | None
    updated_at: int


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A single row of ``name_cache`` or ``address_cache``.

    Names (the forward key and the reverse value) are lowercased on
    construction.

    Attributes:
        direction: Which table the row belongs to.
        key: Lowercased name (forward) or address (reverse).
        value: Resolved address (forward), resolved name (reverse), or
            ``None`` when the key is known to resolve to nothing.
        updated_at: Unix timestamp of the last write.

    Examples:
        ```python
        entry = CacheEntry(Direction.FORWARD, "Alice.voi", ADDR, 1_700_000_000)
        entry.key                              # "alice.voi"
        entry.is_fresh(1_700_000_100, 3600)    # True
        entry.mirrored()                       # CacheEntry(REVERSE, ADDR, "alice.voi", ...)
        ```
    """

    direction: Direction
    key: str
    value: str | None
    updated_at: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", Direction(self.direction))
        validate_str_not_empty(self.key, "key")
        validate_optional_str(self.value, "value")
        validate_timestamp(self.updated_at, "updated_at")

        if self.direction is Direction.FORWARD:
            object.__setattr__(self, "key", normalize_name(self.key))
        elif self.value is not None:
            object.__setattr__(self, "value", normalize_name(self.value))

    def age(self, now: float) -> int:
        """Whole seconds elapsed since ``updated_at``; never negative."""
        return max(math.floor(now - self.updated_at), 0)

    def is_fresh(self, now: float, ttl: int) -> bool:
        """Whether the entry is still within its TTL window at *now*."""
        return self.age(now) < ttl

    def mirrored(self) -> CacheEntry | None:
        """The matching row for the opposite table, or ``None`` for absent values."""
        if self.value is None:
            return None
        return CacheEntry(
            direction=self.direction.opposite,
            key=self.value,
            value=self.key,
            updated_at=self.updated_at,
        )

    def to_db_params(self) -> CacheEntryDbParams:
        """Return the row as upsert parameters."""
        return CacheEntryDbParams(key=self.key, value=self.value, updated_at=self.updated_at)

    @classmethod
    def from_db_params(cls, direction: Direction, params: CacheEntryDbParams) -> CacheEntry:
        """Rebuild an entry from a stored row."""
        return cls(
            direction=direction,
            key=params.key,
            value=params.value,
            updated_at=params.updated_at,
        )
