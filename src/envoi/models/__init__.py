"""Pure frozen dataclasses and helpers with zero I/O.

The models layer sits at the bottom of the package's dependency graph.
Address encoding comes from ``algosdk``; everything else is stdlib.

Attributes:
    CacheEntry: One row of ``name_cache`` or ``address_cache``.
    Resolution: Result of resolving one name or address.
    BatchResolution: Ordered results plus a
        [BatchState][envoi.models.constants.BatchState] label.
    Direction: Forward (name to address) or reverse (address to name).
    is_address / decode_address / encode_address: Address helpers.
    is_valid_name / normalize_name: Name helpers.
"""

from .address import ZERO_ADDRESS, decode_address, encode_address, is_address
from .cache_entry import CacheEntry, CacheEntryDbParams
from .constants import BatchState, Direction, ServiceName
from .name import has_tld, is_valid_name, normalize_name
from .resolution import BatchResolution, Resolution


__all__ = [
    "ZERO_ADDRESS",
    "BatchResolution",
    "BatchState",
    "CacheEntry",
    "CacheEntryDbParams",
    "Direction",
    "Resolution",
    "ServiceName",
    "decode_address",
    "encode_address",
    "has_tld",
    "is_address",
    "is_valid_name",
    "normalize_name",
]
