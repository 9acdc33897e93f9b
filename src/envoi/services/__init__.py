"""Service layer: the resolution pipeline and the services built on it.

Services sit at the top of the package and depend on
[envoi.core][envoi.core], [envoi.utils][envoi.utils] and
[envoi.models][envoi.models]. Each extends
[BaseService][envoi.core.base_service.BaseService].

Attributes:
    Api: FastAPI lookup service.
    common: Chain resolver, cache store, coordinator, batch orchestrator.

Examples:
    ```python
    from envoi.core import Brotr
    from envoi.services import Api

    brotr = Brotr.from_yaml("config/brotr.yaml")
    async with brotr:
        api = Api.from_yaml("config/services/api.yaml", brotr=brotr)
        async with api:
            await api.run_forever()
    ```
"""

from .api import Api, ApiConfig


__all__ = ["Api", "ApiConfig"]
