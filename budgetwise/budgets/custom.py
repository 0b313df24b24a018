"""Custom and mini budget lifecycle: planned -> active -> completed."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Iterable, List, Sequence

from ..dates import month_boundaries, parse_date
from ..models import ZERO, CustomBudget, SystemBudget, Transaction


def initial_status(start_date: Any, today: date) -> str:
    """``'planned'`` for a budget starting after ``today``, else ``'active'``."""
    start = parse_date(start_date)
    if start is not None and start > today:
        return 'planned'
    return 'active'


def complete_budget(budget: CustomBudget, transactions: Iterable[Transaction]) -> CustomBudget:
    """Close ``budget``: its allocation shrinks to what was actually paid.

    The allocation before completion is kept in ``original_allocated_amount``
    so the budget can be reactivated later.
    """
    spent = sum(
        (t.amount for t in transactions or []
         if t.is_expense and t.is_paid and t.custom_budget_id == budget.id),
        ZERO,
    )
    original = budget.original_allocated_amount
    if not original:
        original = budget.allocated_amount
    return replace(
        budget,
        status='completed',
        allocated_amount=spent,
        original_allocated_amount=original,
    )


def reactivate_budget(budget: CustomBudget) -> CustomBudget:
    restored = budget.original_allocated_amount or budget.allocated_amount
    return replace(budget, status='active', allocated_amount=restored, original_allocated_amount=None)


def cascade_delete(budget_id: str, transactions: Iterable[Transaction]) -> List[str]:
    """Ids of the transactions that go away together with ``budget_id``."""
    if not budget_id:
        return []
    return [t.id for t in transactions or [] if t.custom_budget_id == budget_id]


def active_budgets_for_month(
    custom_budgets: Sequence[CustomBudget],
    system_budgets: Sequence[SystemBudget],
    month: int,
    year: int,
) -> List[Any]:
    """Budgets shown for a month: that month's system budgets first, then
    active or completed custom budgets overlapping it."""
    period = month_boundaries(month, year)
    system = [
        b for b in system_budgets or []
        if b.start_date == period.start and b.end_date == period.end
    ]
    custom = [
        b for b in custom_budgets or []
        if b.status in ('active', 'completed')
        and b.start_date is not None and b.end_date is not None
        and b.start_date <= period.end and b.end_date >= period.start
    ]
    return system + custom
