"""Name and address resolution against the on-chain registry.

[ChainResolver][envoi.services.common.chain.ChainResolver] validates its
input, derives the lookup key with [namehash][envoi.utils.namehash], asks
a [ChainLookup][envoi.utils.algod.ChainLookup] and decodes the answer.

It never raises for chain trouble. Invalid input, an unregistered key and
a failed lookup all come back as ``""``; failures are logged and counted
in [CacheStats][envoi.services.common.stats.CacheStats] so they stay
visible in metrics even though callers cannot tell them apart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from envoi.core.exceptions import ChainLookupError
from envoi.core.logger import Logger
from envoi.models.address import is_address
from envoi.models.name import is_valid_name, normalize_name
from envoi.utils.namehash import digest_to_int, namehash, reverse_key

from .stats import CacheStats


if TYPE_CHECKING:
    from envoi.utils.algod import ChainConfig, ChainLookup


def decode_name(raw: bytes) -> str:
    """Decode a stored name, dropping the NUL padding of fixed-width slots."""
    return raw.decode("utf-8", errors="replace").replace("\x00", "")


class ChainResolver:
    """Single-key resolution in both directions.

    Args:
        lookup: Chain capability (e.g. [AlgodClient][envoi.utils.algod.AlgodClient]).
        resolver_app_id: Application whose storage holds reverse records.
        registry_app_id: ARC-72 application whose token owners are the
            forward records.
        stats: Counters shared with the coordinator; a private instance
            is created when omitted.
    """

    def __init__(
        self,
        lookup: ChainLookup,
        *,
        resolver_app_id: int,
        registry_app_id: int,
        stats: CacheStats | None = None,
    ) -> None:
        self._lookup = lookup
        self._resolver_app_id = resolver_app_id
        self._registry_app_id = registry_app_id
        self._stats = stats if stats is not None else CacheStats()
        self._logger = Logger("chain_resolver")

    @classmethod
    def from_config(
        cls, lookup: ChainLookup, config: ChainConfig, stats: CacheStats | None = None
    ) -> ChainResolver:
        return cls(
            lookup,
            resolver_app_id=config.resolver_app_id,
            registry_app_id=config.registry_app_id,
            stats=stats,
        )

    @property
    def stats(self) -> CacheStats:
        return self._stats

    async def resolve_address_to_name(self, address: str) -> str:
        """Return the primary name of *address*, or ``""``."""
        if not is_address(address):
            return ""
        try:
            raw = await self._lookup.get_by_storage_key(self._resolver_app_id, reverse_key(address))
        except ChainLookupError as e:
            self._record_failure("reverse", address, e)
            return ""
        if not raw:
            return ""
        return decode_name(raw)

    async def resolve_name_to_address(self, name: str) -> str:
        """Return the owner address of *name*, or ``""``."""
        if not is_valid_name(name):
            return ""
        token_id = digest_to_int(namehash(normalize_name(name)))
        try:
            owner = await self._lookup.get_owner_of_digest(self._registry_app_id, token_id)
        except ChainLookupError as e:
            self._record_failure("forward", name, e)
            return ""
        if not owner or not is_address(owner):
            return ""
        return owner

    def _record_failure(self, direction: str, key: str, error: ChainLookupError) -> None:
        self._stats.chain_errors += 1
        self._logger.warning(
            "chain_lookup_failed",
            direction=direction,
            key=key,
            error_type=type(error).__name__,
            error=str(error),
        )
