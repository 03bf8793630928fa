from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from gelfix_common.models import AppConfig
from gelfix_common.settings import get_settings


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping/dict: {p}")
    return data


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load and validate a gelfix config file.

    Falls back to GELFIX_CONFIG when no path is given, and to built-in
    defaults when neither is set.
    """
    target = path or get_settings().config
    if not target:
        return AppConfig()
    return AppConfig.from_mapping(load_yaml(target))
