from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "SEARCHRAG_CONFIG"

_ENV_PATTERN = re.compile(r"^\$\{(?P<key>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>.*))?\}$")


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _resolve_env(value: Any) -> Any:
    if isinstance(value, str):
        match = _ENV_PATTERN.match(value)
        if match:
            return os.getenv(match.group("key"), match.group("default") or "")
        return value
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env(item) for item in value]
    return value


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing configuration file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")
    return _resolve_env(data)


@lru_cache(maxsize=4)
def load_app_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the primary application config.

    Resolution order: explicit path, ``SEARCHRAG_CONFIG``, ``configs/app.yaml``.
    """

    path = Path(config_path or os.getenv(CONFIG_ENV_VAR) or "configs/app.yaml")
    return _load_yaml(path)


def section(config: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Walk nested mappings, returning an empty dict for missing levels."""

    current: Any = config
    for key in keys:
        if not isinstance(current, dict):
            return {}
        current = current.get(key) or {}
    return current if isinstance(current, dict) else {}
