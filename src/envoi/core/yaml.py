"""YAML configuration loading.

Used by [Pool.from_yaml()][envoi.core.pool.Pool.from_yaml],
[Brotr.from_yaml()][envoi.core.brotr.Brotr.from_yaml] and
[BaseService.from_yaml()][envoi.core.base_service.BaseService.from_yaml].
The returned mapping is unvalidated; callers hand it to a Pydantic model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Parse a YAML file with ``yaml.safe_load``.

    Returns:
        The top-level mapping, or an empty dict for an empty file.

    Raises:
        FileNotFoundError: If *config_path* does not exist.
        yaml.YAMLError: On invalid YAML syntax.
        ConfigurationError: If the document is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top-level YAML value must be a mapping")
    return data
