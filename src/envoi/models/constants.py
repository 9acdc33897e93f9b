"""Shared constants for the models layer.

Enumerations used across the models, services, and HTTP layers. Kept in
one module so that ``envoi.models`` stays free of circular imports.

See Also:
    [CacheEntry][envoi.models.cache_entry.CacheEntry]: Uses
        [Direction][envoi.models.constants.Direction] to pick its table.
    [BatchResolution][envoi.models.resolution.BatchResolution]: Carries a
        [BatchState][envoi.models.constants.BatchState] label.
"""

from __future__ import annotations

from enum import StrEnum


class Direction(StrEnum):
    """Lookup direction for a resolution request.

    Attributes:
        FORWARD: Name to address. Backed by the ``name_cache`` table and the
            on-chain ownership lookup.
        REVERSE: Address to name. Backed by the ``address_cache`` table and
            the on-chain box lookup keyed by
            [reverse_key()][envoi.utils.namehash.reverse_key].
    """

    FORWARD = "forward"
    REVERSE = "reverse"

    @property
    def opposite(self) -> Direction:
        """The direction whose table mirrors this one."""
        return Direction.REVERSE if self is Direction.FORWARD else Direction.FORWARD

    @property
    def table(self) -> str:
        """Name of the cache table keyed by this direction's input."""
        return "name_cache" if self is Direction.FORWARD else "address_cache"


class BatchState(StrEnum):
    """Overall cache outcome of a batch, exposed as the ``X-Cache`` header.

    Attributes:
        HIT: Every item was served from a fresh cache entry.
        MISS: Every item required a chain resolution.
        MIXED: Some items hit, some missed.
        BYPASS: The caller asked to ignore the cache.
    """

    HIT = "HIT"
    MISS = "MISS"
    MIXED = "MIXED"
    BYPASS = "BYPASS"


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics labels."""

    API = "api"
