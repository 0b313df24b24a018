#!/usr/bin/env python3
"""Print a month's budget summary from the SQLite store.

System budgets for the month are created or corrected first.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budgetwise.budgets import default_goals, ensure_system_budgets
from budgetwise.config import EngineSettings
from budgetwise.db import SqliteBudgetStore
from budgetwise.formatting import format_currency
from budgetwise.summary import compose_dashboard_summary


def _parse_month(value: str) -> tuple:
    try:
        year, month = value.split('-')
        return int(month) - 1, int(year)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM, got {value!r}") from None


def main(month: int, year: int, db_path: Optional[str] = None, sync: bool = True) -> int:
    settings = EngineSettings.from_config()
    store = SqliteBudgetStore(db_path)
    store.init_db()

    goals = store.fetch_goals() or default_goals()
    transactions = store.fetch_transactions()
    categories = store.fetch_categories()
    custom_budgets = store.fetch_custom_budgets()

    if sync:
        result = ensure_system_budgets(store, month, year, goals, transactions, settings, today=date.today())
        if result.failed:
            print(f"Could not sync system budgets: {', '.join(result.failed)}", file=sys.stderr)

    system_budgets = store.find_system_budgets()
    summary = compose_dashboard_summary(
        transactions, categories, system_budgets, custom_budgets, goals, month, year, settings
    )

    def money(value) -> str:
        return format_currency(value, settings)

    print(f"Summary for {summary.period.label}")
    print(f"  Income:    {money(summary.monthly_income)}")
    print(f"  Expenses:  {money(summary.monthly_expenses)}")
    print(f"  Remaining: {money(summary.remaining_budget)}")

    print("\nBy priority:")
    for key, total in summary.priorities.items():
        print(f"  {key:<14} {money(total.amount):>14}  {total.percent_of_income:5.1f}% of income")

    print("\nBudgets:")
    for row in summary.overview.system_rows + summary.overview.custom_rows:
        stats = row.stats
        print(
            f"  {row.name:<20} {money(stats.used):>12} of {money(stats.allocated):>12}"
            f"  {stats.status_label} {money(stats.remaining_display)}"
        )

    overview = summary.overview
    print(f"\nSavings: {money(overview.actual_savings)} of {money(overview.savings_target)}")
    if summary.show_savings_warning:
        print(f"  Warning: savings shortfall of {money(overview.savings_shortfall)}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show the budget summary for one month.')
    parser.add_argument('--month', type=_parse_month, default=None, help='Month as YYYY-MM (default: current)')
    parser.add_argument('--db', default=None, help='SQLite database path (default: BUDGETWISE_DB_PATH)')
    parser.add_argument('--no-sync', action='store_true', help='Do not create or update system budgets')
    parser.add_argument('--verbose', action='store_true', help='Log sync details')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    today = date.today()
    selected_month, selected_year = args.month or (today.month - 1, today.year)
    raise SystemExit(main(selected_month, selected_year, db_path=args.db, sync=not args.no_sync))
