r"""envoi -- cached name and address resolution for the Voi chain.

Resolves human-readable names (``alice.voi``) to account addresses and
back, answering from two PostgreSQL cache tables while fresh and from the
on-chain registry otherwise.

Imports flow strictly downward:

```text
              services         Coordinator, batch orchestrator, HTTP API
             /        \
          core        utils    Infrastructure / namehash, algod client
             \        /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses and address helpers. Zero I/O.
    core: Connection pool, database facade, base service, exceptions,
        logging, metrics.
    utils: Namehash derivation and the algod REST client.
    services: The resolution pipeline and the Api service.

Note:
    Top-level imports (``from envoi import Api``) use lazy loading and
    resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("envoi-resolver")

__all__ = [
    "AlgodClient",
    "Api",
    "ApiConfig",
    "BaseService",
    "BatchOrchestrator",
    "BatchResolution",
    "BatchState",
    "Brotr",
    "BrotrConfig",
    "CacheCoordinator",
    "CacheEntry",
    "ChainConfig",
    "ChainResolver",
    "Direction",
    "Logger",
    "Pool",
    "PoolConfig",
    "Resolution",
    "namehash",
    "reverse_key",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("envoi.core", "BaseService"),
    "Brotr": ("envoi.core", "Brotr"),
    "BrotrConfig": ("envoi.core", "BrotrConfig"),
    "Logger": ("envoi.core", "Logger"),
    "Pool": ("envoi.core", "Pool"),
    "PoolConfig": ("envoi.core", "PoolConfig"),
    "BatchResolution": ("envoi.models", "BatchResolution"),
    "BatchState": ("envoi.models", "BatchState"),
    "CacheEntry": ("envoi.models", "CacheEntry"),
    "Direction": ("envoi.models", "Direction"),
    "Resolution": ("envoi.models", "Resolution"),
    "AlgodClient": ("envoi.utils.algod", "AlgodClient"),
    "ChainConfig": ("envoi.utils.algod", "ChainConfig"),
    "namehash": ("envoi.utils.namehash", "namehash"),
    "reverse_key": ("envoi.utils.namehash", "reverse_key"),
    "BatchOrchestrator": ("envoi.services.common", "BatchOrchestrator"),
    "CacheCoordinator": ("envoi.services.common", "CacheCoordinator"),
    "ChainResolver": ("envoi.services.common", "ChainResolver"),
    "Api": ("envoi.services", "Api"),
    "ApiConfig": ("envoi.services", "ApiConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'envoi' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
