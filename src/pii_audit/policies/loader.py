"""Config loader.

Scanner and reviewer settings are YAML files with simple keys. Keeping them
in YAML allows:
- reviewing what a scan ran with alongside its report
- versioned configuration across runs
"""

from __future__ import annotations
from typing import Any, Dict
import yaml

from ..errors import ConfigurationError


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid yaml in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping of settings")
    return data
