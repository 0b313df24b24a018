"""Report-level analytics built on pandas.

These helpers turn transaction records into DataFrames for the reports
view: category breakdowns, actual-vs-target by priority, an outlier
adjusted expense projection and a 0-100 financial health score.
Amounts are floats here; the engine modules keep exact decimals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .dates import is_date_in_range, last_day_of_month, month_boundaries, shift_month
from .defaults import get_config_value
from .engine import effective_date, settlement_total
from .models import PRIORITIES, BudgetGoal, Category, Transaction
from .priority import PriorityResolver

UNCATEGORIZED_COLOR = '#9ca3af'

PRIORITY_LABELS = {
    'needs': ('Needs', '#EF4444'),
    'wants': ('Wants', '#F59E0B'),
    'savings': ('Savings', '#10B981'),
}

TRANSACTION_COLUMNS = [
    'id', 'title', 'amount', 'type', 'date', 'paid_date', 'effective_date',
    'is_paid', 'category_id', 'financial_priority', 'custom_budget_id', 'month',
]


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """One row per transaction with its effective date and ``YYYY-MM`` month."""
    rows = [
        {
            'id': t.id,
            'title': t.title,
            'amount': float(t.amount),
            'type': t.type,
            'date': t.date,
            'paid_date': t.paid_date,
            'effective_date': effective_date(t),
            'is_paid': t.is_paid,
            'category_id': t.category_id,
            'financial_priority': t.financial_priority,
            'custom_budget_id': t.custom_budget_id,
        }
        for t in transactions or []
    ]
    if not rows:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    df = pd.DataFrame(rows)
    df['effective_date'] = pd.to_datetime(df['effective_date'], errors='coerce')
    df['month'] = df['effective_date'].dt.strftime('%Y-%m')
    return df[TRANSACTION_COLUMNS]


def _category_lookup(categories: Optional[Sequence[Category]]) -> Dict[str, Category]:
    return {c.id: c for c in categories or []}


def monthly_category_breakdown(
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]],
    monthly_income: float,
) -> pd.DataFrame:
    """Expense totals per category for an already filtered month.

    Returns:
        DataFrame with ``category_id``, ``name``, ``color``, ``amount`` and
        ``percent_of_income`` sorted by amount, largest first.
    """
    columns = ['category_id', 'name', 'color', 'amount', 'percent_of_income']
    df = transactions_frame(transactions)
    expenses = df[df['type'] == 'expense']
    if expenses.empty:
        return pd.DataFrame(columns=columns)

    lookup = _category_lookup(categories)
    totals = (
        expenses.assign(category_id=expenses['category_id'].fillna('uncategorized'))
        .groupby('category_id', as_index=False)['amount']
        .sum()
    )
    totals['name'] = totals['category_id'].map(lambda c: lookup[c].name if c in lookup else 'Uncategorized')
    totals['color'] = totals['category_id'].map(lambda c: lookup[c].color if c in lookup else UNCATEGORIZED_COLOR)
    income = float(monthly_income or 0)
    totals['percent_of_income'] = totals['amount'] / income * 100 if income > 0 else 0.0
    return totals[columns].sort_values('amount', ascending=False).reset_index(drop=True)


def priority_chart_data(
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]],
    goals: Sequence[BudgetGoal],
    monthly_income: float,
    custom_budgets: Optional[Iterable] = None,
) -> pd.DataFrame:
    """Actual share of income per priority next to the goal percentage.

    Expenses in a custom budget count as wants. Priorities with neither
    spending nor a target are dropped.
    """
    resolve = PriorityResolver(categories, custom_budgets)
    spent = {p: 0.0 for p in PRIORITIES}
    for t in transactions or []:
        if not t.is_expense:
            continue
        priority = resolve(t)
        if priority in spent:
            spent[priority] += float(t.amount)

    targets = {g.priority: float(g.target_percentage or 0) for g in goals or []}
    income = float(monthly_income or 0)
    rows = []
    for priority in PRIORITIES:
        label, color = PRIORITY_LABELS[priority]
        actual = spent[priority] / income * 100 if income > 0 else 0.0
        target = targets.get(priority, 0.0)
        if actual > 0 or target > 0:
            rows.append({'priority': priority, 'name': label, 'actual': actual, 'target': target, 'color': color})
    return pd.DataFrame(rows, columns=['priority', 'name', 'actual', 'target', 'color'])


def adjusted_average(values: Sequence[float]) -> float:
    """Mean of ``values`` after dropping points more than 2 standard deviations out."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    if arr.size == 1:
        return float(arr[0])
    mean = arr.mean()
    std = arr.std()
    if std == 0:
        return float(mean)
    kept = arr[np.abs((arr - mean) / std) <= 2]
    if kept.size == 0:
        return float(mean)
    return float(kept.mean())


def _history_months(today: date, months_back: int) -> List[str]:
    """``YYYY-MM`` keys of the ``months_back`` complete months before ``today``."""
    keys = []
    for offset in range(1, months_back + 1):
        month, year = shift_month(today.month - 1, today.year, -offset)
        keys.append(f"{year:04d}-{month + 1:02d}")
    return keys


@dataclass
class ExpenseProjection:
    total_projected_monthly: float
    categories: pd.DataFrame


def expense_projection(
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]],
    today: date,
    historical_months: Optional[int] = None,
) -> ExpenseProjection:
    """Project monthly spend per category from the last complete months.

    Months without spending count as zero; categories with no spending in
    the whole window are left out.
    """
    if historical_months is None:
        historical_months = get_config_value('engine', 'constants', 'projection_months', default=6)
    columns = ['category_id', 'name', 'color', 'average_spend', 'history']
    keys = _history_months(today, historical_months)
    df = transactions_frame(transactions)
    expenses = df[(df['type'] == 'expense') & df['month'].isin(keys)]
    if expenses.empty:
        return ExpenseProjection(0.0, pd.DataFrame(columns=columns))

    history = (
        expenses.assign(category_id=expenses['category_id'].fillna('uncategorized'))
        .pivot_table(index='category_id', columns='month', values='amount', aggfunc='sum', fill_value=0.0)
        .reindex(columns=keys, fill_value=0.0)
    )

    lookup = _category_lookup(categories)
    rows = []
    for category_id, values in history.iterrows():
        series = values.to_numpy(dtype=float)
        if not series.any():
            continue
        category = lookup.get(category_id)
        rows.append({
            'category_id': category_id,
            'name': category.name if category else 'Uncategorized',
            'color': category.color if category else UNCATEGORIZED_COLOR,
            'average_spend': adjusted_average(series),
            'history': series.tolist(),
        })

    result = pd.DataFrame(rows, columns=columns)
    if not result.empty:
        result = result.sort_values('average_spend', ascending=False).reset_index(drop=True)
    return ExpenseProjection(float(result['average_spend'].sum()) if not result.empty else 0.0, result)


@dataclass(frozen=True)
class CurrentMonthEstimate:
    actual: float
    remaining: float

    @property
    def total(self) -> float:
        return self.actual + self.remaining


def estimate_current_month(
    month_transactions: Iterable[Transaction],
    baseline: float,
    today: date,
) -> CurrentMonthEstimate:
    """Spent so far plus the rest of the month at the baseline daily rate."""
    days_in_month = last_day_of_month(today.month - 1, today.year).day
    days_remaining = days_in_month - max(1, today.day)
    actual = sum(float(t.amount) for t in month_transactions or [] if t.is_expense)
    daily_rate = float(baseline or 0) / days_in_month
    return CurrentMonthEstimate(actual=actual, remaining=daily_rate * days_remaining)


def paid_expenses(transactions: Iterable[Transaction], start, end) -> float:
    """Paid expenses whose paid date falls in ``[start, end]``."""
    return sum(
        float(t.amount) for t in transactions or []
        if t.is_expense and t.is_paid and t.paid_date and is_date_in_range(t.paid_date, start, end)
    )


def _half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def health_label(score: int) -> str:
    if score >= 80:
        return 'Excellent'
    if score >= 60:
        return 'Good'
    if score >= 40:
        return 'Fair'
    return 'Needs Work'


@dataclass(frozen=True)
class HealthScore:
    score: int
    savings: int
    solvency: int
    trend: int
    savings_rate: float
    expense_diff: float

    @property
    def label(self) -> str:
        return health_label(self.score)


def financial_health_score(transactions: Sequence[Transaction], month: int, year: int) -> HealthScore:
    """Score the zero-indexed ``month`` against the month before.

    * savings (max 50): savings rate relative to a 20% target
    * solvency (max 30): full marks when income covers expenses, minus one
      point per percent overspent otherwise
    * trend (max 20): 10 for a better savings rate, 10 for lower expenses
    """
    items = list(transactions or [])
    current = month_boundaries(month, year)
    previous = month_boundaries(*shift_month(month, year, -1))

    income = float(settlement_total(items, current.start, current.end, type='income'))
    expenses = paid_expenses(items, current.start, current.end)
    prev_income = float(settlement_total(items, previous.start, previous.end, type='income'))
    prev_expenses = paid_expenses(items, previous.start, previous.end)

    net = income - expenses
    rate = net / income if income > 0 else 0.0
    prev_rate = (prev_income - prev_expenses) / prev_income if prev_income > 0 else 0.0

    savings = min(50.0, rate / 0.20 * 50) if rate > 0 else 0.0
    if net >= 0:
        solvency = 30.0
    else:
        overspend = abs(net) / income if income > 0 else 1.0
        solvency = max(0.0, 30 - overspend * 100)
    trend = 0
    if rate > prev_rate:
        trend += 10
    if expenses < prev_expenses:
        trend += 10

    return HealthScore(
        score=_half_up(savings + solvency + trend),
        savings=_half_up(savings),
        solvency=_half_up(solvency),
        trend=trend,
        savings_rate=rate * 100,
        expense_diff=prev_expenses - expenses,
    )
