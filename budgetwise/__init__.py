"""Top-level package for the BudgetWise budget engine.

The primary modules are:

* ``engine`` - commitment and settlement views, cross-period detection and
  paid-date migration
* ``budgets`` - per-budget statistics, goals and system budget lifecycle
* ``summary`` - the dashboard summary composed from the above
* ``reports`` - pandas based breakdowns, projections and health score
* ``db`` - SQLite store

To print a month's summary from the command line:

```bash
python scripts/month_summary.py --month 2025-01
```
"""

from .config import EngineSettings
from .engine import commitment_total, detect_cross_period, migrate_on_paid_date_change, settlement_total
from .priority import resolve_priority
from .summary import compose_dashboard_summary

__all__ = [
    "EngineSettings",
    "commitment_total",
    "compose_dashboard_summary",
    "detect_cross_period",
    "migrate_on_paid_date_change",
    "resolve_priority",
    "settlement_total",
]
