"""Infrastructure layer shared by every envoi service.

Depends only on [envoi.models][envoi.models]; depended upon by
[envoi.services][envoi.services].

Attributes:
    Pool: asyncpg connection pool with retry and backoff.
    Brotr: Timeout-aware query facade. Services use it, never ``Pool``.
    BaseService: Generic lifecycle base with ``run()`` / ``run_forever()``
        and Prometheus bookkeeping.
    Logger: Structured ``key=value`` / JSON logger.
    MetricsServer: Prometheus ``/metrics`` listener.
    load_yaml: ``yaml.safe_load`` wrapper used by every ``from_yaml()``.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .brotr import Brotr, BrotrConfig, BrotrTimeoutsConfig
from .exceptions import (
    CacheStoreError,
    ChainLookupError,
    ChainTimeoutError,
    ConfigurationError,
    DatabaseError,
    EnvoiError,
    MalformedInputError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    REQUEST_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
)
from .pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "REQUEST_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "Brotr",
    "BrotrConfig",
    "BrotrTimeoutsConfig",
    "CacheStoreError",
    "ChainLookupError",
    "ChainTimeoutError",
    "ConfigT",
    "ConfigurationError",
    "DatabaseConfig",
    "DatabaseError",
    "EnvoiError",
    "Logger",
    "MalformedInputError",
    "MetricsConfig",
    "MetricsServer",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PoolTimeoutsConfig",
    "ServerSettingsConfig",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
]
