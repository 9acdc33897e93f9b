"""HTTP lookup service for names and addresses.

See Also:
    [Api][envoi.services.api.service.Api]: The service class.
    [ApiConfig][envoi.services.api.configs.ApiConfig]: Service configuration.
"""

from .configs import ApiConfig, CacheConfig
from .service import Api


__all__ = ["Api", "ApiConfig", "CacheConfig"]
