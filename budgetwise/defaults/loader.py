"""Read the JSON defaults shipped next to this module."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Parsed contents of ``<config_name>.json``; raises FileNotFoundError if absent."""
    path = CONFIG_DIR / f"{config_name}.json"
    with path.open(encoding='utf-8') as f:
        return json.load(f)


def get_engine_config() -> Dict[str, Any]:
    return load_config('engine')


def get_config_value(config_name: str, *keys: str, default: Any = None) -> Any:
    """Walk ``keys`` into a config file, returning ``default`` on any miss."""
    try:
        value = load_config(config_name)
        for key in keys:
            value = value[key]
    except (KeyError, TypeError, FileNotFoundError):
        return default
    return value
