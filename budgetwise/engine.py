"""Dual-timeline calculation engine.

Two views over the same transactions, never mixed:

* **Commitment view**: what a bucket has promised away, keyed on the
  bucket assignment alone (paid status and dates are ignored).
* **Settlement view**: what actually moved in a period, keyed on the
  *effective date* (``paid_date`` once paid, the commitment ``date`` while
  pending).

System budgets are *time sticky*: when an expense's paid date moves into
another month it follows the matching system budget of that month.
Custom and mini budgets are *context sticky* and never migrate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence

from .dates import is_date_in_range, parse_date, period_label
from .models import ZERO, SystemBudget, Transaction, budget_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossPeriodResult:
    is_cross_period: bool
    original_period: Optional[str] = None
    bucket_name: Optional[str] = None
    bucket_type: Optional[str] = None


NOT_CROSS_PERIOD = CrossPeriodResult(False)


def effective_date(transaction: Transaction) -> Optional[date]:
    """Settlement date: ``paid_date`` when paid, else the commitment date."""
    if transaction.is_paid and transaction.paid_date:
        return transaction.paid_date
    return transaction.date


def is_transaction_in_range(transaction: Transaction, start: Any, end: Any) -> bool:
    """Settlement-view membership; income and expenses alike use the effective date."""
    return is_date_in_range(effective_date(transaction), start, end)


def commitment_total(bucket_id: Optional[str], expenses: Iterable[Transaction]) -> Decimal:
    """Sum every expense assigned to ``bucket_id`` regardless of dates."""
    if not bucket_id or expenses is None:
        return ZERO
    return sum(
        (e.amount for e in expenses
         if e.is_expense and (e.custom_budget_id == bucket_id or e.bucket_id == bucket_id)),
        ZERO,
    )


def settlement_total(
    transactions: Iterable[Transaction],
    start: Any,
    end: Any,
    type: str = 'expense',
) -> Decimal:
    """Sum transactions of ``type`` whose effective date is in ``[start, end]``."""
    return sum(
        (t.amount for t in transactions or []
         if t.type == type and is_date_in_range(effective_date(t), start, end)),
        ZERO,
    )


def detect_cross_period(
    transaction: Transaction,
    period_start: Any,
    period_end: Any,
    budgets: Optional[Iterable] = None,
) -> CrossPeriodResult:
    """Flag a paid custom-budget expense committed in another period.

    True only when the paid date lies inside ``[period_start, period_end]``
    while the commitment date lies outside it.
    """
    if not transaction.is_expense:
        return NOT_CROSS_PERIOD
    if not (transaction.is_paid and transaction.paid_date and transaction.custom_budget_id):
        return NOT_CROSS_PERIOD

    committed = parse_date(transaction.date)
    start = parse_date(period_start)
    end = parse_date(period_end)
    if committed is None or start is None or end is None:
        return NOT_CROSS_PERIOD

    paid_inside = is_date_in_range(transaction.paid_date, start, end)
    committed_outside = committed < start or committed > end
    if not (paid_inside and committed_outside):
        return NOT_CROSS_PERIOD

    budget = budget_index(budgets).get(transaction.custom_budget_id)
    return CrossPeriodResult(
        is_cross_period=True,
        original_period=period_label(committed),
        bucket_name=budget.name if budget is not None else 'Unknown Budget',
        bucket_type='CB',
    )


def migrate_on_paid_date_change(
    expense: Transaction,
    new_paid_date: Any,
    system_budgets: Sequence[SystemBudget],
) -> Dict[str, Optional[str]]:
    """Return the bucket assignment an expense should have after a paid-date change."""
    current = {'custom_budget_id': expense.custom_budget_id}
    if not expense.custom_budget_id:
        return current

    bucket = budget_index(system_budgets).get(expense.custom_budget_id)
    if bucket is None or not getattr(bucket, 'is_system_budget', False):
        return current

    new_date = parse_date(new_paid_date)
    if new_date is None:
        return current

    target = next(
        (
            b for b in system_budgets
            if getattr(b, 'is_system_budget', False)
            and b.system_budget_type == bucket.system_budget_type
            and is_date_in_range(new_date, b.start_date, b.end_date)
        ),
        None,
    )
    if target is None:
        return current
    return {'custom_budget_id': target.id}


def apply_paid_date_change(
    expense: Transaction,
    new_paid_date: Any,
    system_budgets: Sequence[SystemBudget],
) -> Transaction:
    """Mark ``expense`` paid on ``new_paid_date`` and migrate its bucket together.

    ``None`` marks the expense unpaid; the bucket assignment is kept. An
    unparseable date leaves the expense unchanged. The input transaction is
    not mutated.
    """
    if new_paid_date is None:
        return replace(expense, is_paid=False, paid_date=None)
    paid_on = parse_date(new_paid_date)
    if paid_on is None:
        logger.warning("Ignoring unparseable paid date %r for expense %s", new_paid_date, expense.id)
        return expense

    assignment = migrate_on_paid_date_change(expense, paid_on, system_budgets)
    if assignment['custom_budget_id'] != expense.custom_budget_id:
        logger.info(
            "Moving expense %s from budget %s to %s after paid date change to %s",
            expense.id, expense.custom_budget_id, assignment['custom_budget_id'], paid_on,
        )
    return replace(
        expense,
        is_paid=True,
        paid_date=paid_on,
        custom_budget_id=assignment['custom_budget_id'],
    )
