"""Configuration management for the budget engine.

Paths come from environment variables with project-relative defaults.
Behavioural settings live in :class:`EngineSettings`, which is passed
explicitly to every calculation that needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .defaults import get_engine_config

# Base project root - assumes this file is in budgetwise/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

DATA_DIR = Path(os.getenv("BUDGETWISE_DATA_DIR", _PROJECT_ROOT / "data"))

DB_PATH = Path(
    os.getenv("BUDGETWISE_DB_PATH", DATA_DIR / "budgetwise.db")
).resolve()


def ensure_data_directories() -> None:
    """Create the data directory if it doesn't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    return str(DB_PATH)


@dataclass(frozen=True)
class EngineSettings:
    """User settings that influence calculations and display."""

    base_currency: str = 'USD'
    currency_symbol: str = '$'
    currency_position: str = 'before'
    thousand_separator: str = ','
    decimal_separator: str = '.'
    decimal_places: int = 2
    hide_trailing_zeros: bool = False
    # True = percentage goals, False = absolute goals
    goal_mode: bool = True
    fixed_lifestyle_mode: bool = False
    fixed_lifestyle_policy: str = 'cap_needs_at_existing'
    preserve_past_budgets: bool = False
    drift_tolerance: Decimal = Decimal('0.01')

    @property
    def is_percentage_mode(self) -> bool:
        return self.goal_mode is not False

    @classmethod
    def from_config(cls, overrides: Optional[Mapping[str, Any]] = None) -> 'EngineSettings':
        """Build settings from ``engine.json`` with optional overrides.

        Unknown override keys are ignored.
        """
        config = get_engine_config()
        values: Dict[str, Any] = dict(config.get('settings', {}))
        tolerance = config.get('constants', {}).get('drift_tolerance')
        if tolerance is not None:
            values['drift_tolerance'] = Decimal(str(tolerance))
        values.update(overrides or {})
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in values.items() if k in known}
        if 'drift_tolerance' in values:
            values['drift_tolerance'] = Decimal(str(values['drift_tolerance']))
        return cls(**values)
