"""Resolution pipeline shared by envoi services.

Attributes:
    ChainResolver: Single-key chain resolution; failures become ``""``.
    CacheStore: Abstract two-table cache with
        [dual_write()][envoi.services.common.store.CacheStore.dual_write].
    BrotrCacheStore: PostgreSQL implementation over
        [Brotr][envoi.core.brotr.Brotr].
    CacheCoordinator: Cache-then-chain resolution of one key.
    BatchOrchestrator: Concurrent batches with a batch cache label.
    CacheStats: Per-cycle counters for metrics.
    queries: The SQL behind ``BrotrCacheStore``.
"""

from .batch import BatchOrchestrator
from .chain import ChainResolver, decode_name
from .coordinator import CacheCoordinator
from .queries import fetch_cache_entry, upsert_cache_entry
from .stats import CacheStats
from .store import BrotrCacheStore, CacheStore, is_valid_key


__all__ = [
    "BatchOrchestrator",
    "BrotrCacheStore",
    "CacheCoordinator",
    "CacheStats",
    "CacheStore",
    "ChainResolver",
    "decode_name",
    "fetch_cache_entry",
    "is_valid_key",
    "upsert_cache_entry",
]
