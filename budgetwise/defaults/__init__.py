"""Tunable engine defaults (constants, goal split, colours, display settings)."""

from .loader import get_config_value, get_engine_config, load_config

__all__ = ['load_config', 'get_engine_config', 'get_config_value']
