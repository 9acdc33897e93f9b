"""Per-cycle resolution counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass(slots=True)
class CacheStats:
    """Counters accumulated between two service cycles.

    Shared by [CacheCoordinator][envoi.services.common.coordinator.CacheCoordinator]
    and [ChainResolver][envoi.services.common.chain.ChainResolver]; the Api
    service drains them into Prometheus with
    [snapshot()][envoi.services.common.stats.CacheStats.snapshot].

    Attributes:
        hits: Lookups served from a fresh cache entry.
        misses: Lookups with no entry, a stale entry, or a failed read.
        bypassed: Lookups where the caller asked to ignore the cache.
        chain_errors: Chain lookups that failed and were reported as absent.
        store_errors: Cache reads or writes that failed.
    """

    hits: int = field(default=0)
    misses: int = field(default=0)
    bypassed: int = field(default=0)
    chain_errors: int = field(default=0)
    store_errors: int = field(default=0)

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.bypassed = 0
        self.chain_errors = 0
        self.store_errors = 0

    def snapshot(self) -> dict[str, int]:
        """Return the current counters and reset them."""
        values = asdict(self)
        self.reset()
        return values
