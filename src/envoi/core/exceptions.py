"""envoi exception hierarchy.

Typed exceptions let callers tell a broken deployment (bad config) apart
from a failing dependency (database, chain node) and from a bad request,
without catching bare ``Exception``.

```text
EnvoiError (base, never raised directly)
├── ConfigurationError      bad YAML, missing keys, missing env vars
├── DatabaseError           pool or query failures
│   └── CacheStoreError     a cache table read or write failed
├── ChainLookupError        node unreachable or returned garbage
│   └── ChainTimeoutError   node did not answer in time
└── MalformedInputError     a name or address failed validation
```

See Also:
    [AlgodClient][envoi.utils.algod.AlgodClient]: Raises
        [ChainLookupError][envoi.core.exceptions.ChainLookupError].
    [BrotrCacheStore][envoi.services.common.store.BrotrCacheStore]: Raises
        [CacheStoreError][envoi.core.exceptions.CacheStoreError].
    [BatchOrchestrator][envoi.services.common.batch.BatchOrchestrator]:
        Raises [MalformedInputError][envoi.core.exceptions.MalformedInputError]
        before any I/O.
"""

from __future__ import annotations


class EnvoiError(Exception):
    """Base exception for all envoi errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(EnvoiError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class DatabaseError(EnvoiError):
    """A pool or query operation against PostgreSQL failed."""


class CacheStoreError(DatabaseError):
    """Reading or writing a cache table failed.

    The coordinator treats a failed read as a miss and a failed write as a
    logged no-op, so this error never reaches an HTTP client.
    """


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class ChainLookupError(EnvoiError):
    """The chain node could not answer a lookup.

    A key that is simply not registered is *not* an error; lookups return
    ``None`` for that case.
    """


class ChainTimeoutError(ChainLookupError):
    """The chain node did not answer within the configured timeout."""


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class MalformedInputError(EnvoiError):
    """A caller-supplied name or address is structurally invalid.

    Attributes:
        key: The offending input.
    """

    def __init__(self, message: str, key: object = None) -> None:
        super().__init__(message)
        self.key = key
