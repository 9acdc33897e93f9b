"""Resolution results returned by the coordinator and the batch orchestrator.

See Also:
    [CacheCoordinator.resolve_one()][envoi.services.common.coordinator.CacheCoordinator.resolve_one]:
        Produces a [Resolution][envoi.models.resolution.Resolution].
    [BatchOrchestrator.resolve_batch()][envoi.services.common.batch.BatchOrchestrator.resolve_batch]:
        Produces a [BatchResolution][envoi.models.resolution.BatchResolution].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ._validation import validate_instance
from .constants import BatchState, Direction


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving a single name or address.

    Attributes:
        key: The name or address exactly as the caller supplied it.
        direction: Lookup direction.
        value: Resolved address or name, ``None`` when nothing is registered.
        cached: True when served from a fresh cache entry.
        age_seconds: Age of the cache entry that served the value; 0 for
            fresh resolutions.
        ttl: TTL the entry was judged against.
    """

    key: str
    direction: Direction
    value: str | None
    cached: bool
    age_seconds: int = 0
    ttl: int = 0

    def __post_init__(self) -> None:
        validate_instance(self.direction, Direction, "direction")
        validate_instance(self.cached, bool, "cached")

    @property
    def found(self) -> bool:
        """Whether a value was resolved."""
        return self.value is not None

    @property
    def ttl_remaining(self) -> int:
        """Seconds of freshness left; callers must not cache the result longer."""
        return max(self.ttl - self.age_seconds, 0)

    def to_dict(self) -> dict[str, Any]:
        """Render as the public JSON shape (``name``/``address``/``cached``)."""
        if self.direction is Direction.FORWARD:
            return {"name": self.key, "address": self.value, "cached": self.cached}
        return {"address": self.key, "name": self.value, "cached": self.cached}


@dataclass(frozen=True, slots=True)
class BatchResolution:
    """Ordered results for a batch plus the batch-level cache label."""

    results: tuple[Resolution, ...]
    state: BatchState

    @property
    def max_age(self) -> int:
        """Largest downstream cache window that keeps every item fresh."""
        if self.state is BatchState.BYPASS or not self.results:
            return 0
        return min(r.ttl_remaining for r in self.results)

    @staticmethod
    def classify(results: tuple[Resolution, ...], *, ignore_cache: bool) -> BatchState:
        """Derive the batch label from per-item ``cached`` flags.

        An empty batch is vacuously a ``HIT`` unless the cache was bypassed.
        """
        if ignore_cache:
            return BatchState.BYPASS
        if all(r.cached for r in results):
            return BatchState.HIT
        if not any(r.cached for r in results):
            return BatchState.MISS
        return BatchState.MIXED
