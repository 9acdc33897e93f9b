"""API service configuration models.

See Also:
    [Api][envoi.services.api.Api]: The service that consumes these models.
    [ChainConfig][envoi.utils.algod.ChainConfig]: Node endpoint and
        registry application ids.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from envoi.core.base_service import BaseServiceConfig
from envoi.services.common.batch import DEFAULT_MAX_CONCURRENCY
from envoi.services.common.coordinator import DEFAULT_TTL
from envoi.utils.algod import ChainConfig  # noqa: TC001 (Pydantic runtime)


class CacheConfig(BaseModel):
    """Cache freshness and batch fan-out.

    Attributes:
        ttl: Seconds a cached entry, including a known-absent one, is
            served without asking the chain.
        max_concurrency: Items of one batch resolved at the same time.
    """

    ttl: int = Field(default=DEFAULT_TTL, ge=0, le=86_400 * 30)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1, le=64)


class ApiConfig(BaseServiceConfig):
    """Configuration for the API service.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port for the HTTP server.
        route_prefix: URL prefix for the lookup routes (``/health`` is not
            prefixed).
        cors_origins: Allowed CORS origins. Empty list disables CORS.
        request_timeout: Seconds a lookup may take before the request is
            answered with 504.
        max_batch_size: Most names or addresses accepted in one request.
        tld: Top-level label every requested name must end with.
        cache: Cache settings.
        chain: Chain node settings. Built from ``ENVOI_*`` environment
            variables when omitted.
    """

    host: str = Field(default="0.0.0.0", min_length=1, description="HTTP bind address")  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")
    route_prefix: str = Field(default="/api", min_length=1)
    cors_origins: list[str] = Field(default_factory=list)
    request_timeout: float = Field(default=30.0, ge=0.01, le=300.0)
    max_batch_size: int = Field(default=50, ge=1, le=1000)
    tld: str = Field(default="voi", min_length=1)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)

    @field_validator("route_prefix")
    @classmethod
    def _normalize_route_prefix(cls, v: str) -> str:
        v = v.strip("/")
        if not v:
            msg = "route_prefix must not be empty"
            raise ValueError(msg)
        return f"/{v}"

    @field_validator("tld")
    @classmethod
    def _normalize_tld(cls, v: str) -> str:
        v = v.strip(".").lower()
        if not v or "." in v:
            msg = "tld must be a single label"
            raise ValueError(msg)
        return v
