"""Dashboard summary composition.

Combines the month's income, expenses and remaining budget with per-budget
statistics and the savings picture into the read-only structures the
presentation layer renders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .budgets.calculations import (
    BudgetStats,
    FinancialBreakdown,
    SavingsProgress,
    compute_budget_stats,
    financial_breakdown,
    percentage,
    savings_progress,
)
from .budgets.custom import active_budgets_for_month
from .budgets.goals import goal_map, resolve_budget_limit
from .config import EngineSettings
from .dates import Period, is_date_in_range, month_boundaries
from .engine import effective_date, settlement_total
from .models import PRIORITIES, ZERO, BudgetGoal, Category, CustomBudget, SystemBudget, Transaction


def monthly_income(transactions: Iterable[Transaction], start, end) -> Decimal:
    return settlement_total(transactions, start, end, type='income')


def monthly_expenses(transactions: Iterable[Transaction], start, end) -> Decimal:
    """Paid expenses by paid date plus unpaid expenses by commitment date."""
    total = ZERO
    for t in transactions or []:
        if t.is_expense and is_date_in_range(effective_date(t), start, end):
            total += t.amount
    return total


def remaining_budget(income: Decimal, expenses: Decimal) -> Decimal:
    return income - expenses


@dataclass(frozen=True)
class PriorityTotal:
    amount: Decimal
    percent_of_income: float


def priority_breakdown(breakdown: FinancialBreakdown, income: Decimal) -> Dict[str, PriorityTotal]:
    keys = list(PRIORITIES) + ['uncategorized']
    return {
        key: PriorityTotal(amount=breakdown.total_for(key), percent_of_income=percentage(breakdown.total_for(key), income))
        for key in keys
    }


@dataclass
class BudgetRow:
    budget: object
    stats: BudgetStats

    @property
    def name(self) -> str:
        return getattr(self.budget, 'name', '')

    @property
    def is_system_budget(self) -> bool:
        return getattr(self.budget, 'is_system_budget', False)


@dataclass
class BudgetOverview:
    system_rows: List[BudgetRow] = field(default_factory=list)
    custom_rows: List[BudgetRow] = field(default_factory=list)
    automatic_savings: Decimal = ZERO
    manual_savings: Decimal = ZERO
    savings: SavingsProgress = field(default_factory=lambda: savings_progress(0, 0))

    @property
    def actual_savings(self) -> Decimal:
        return self.savings.actual

    @property
    def savings_target(self) -> Decimal:
        return self.savings.target

    @property
    def savings_shortfall(self) -> Decimal:
        return self.savings.shortfall

    @property
    def show_savings_warning(self) -> bool:
        return self.savings.shortfall > 0

    def row_for(self, budget_type: str) -> Optional[BudgetRow]:
        return next((r for r in self.system_rows if r.budget.system_budget_type == budget_type), None)


def compose_budget_overview(
    system_budgets: Sequence[SystemBudget],
    custom_budgets: Sequence[CustomBudget],
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    goals: Sequence[BudgetGoal],
    monthly_income: Decimal,
    settings: Optional[EngineSettings] = None,
    routing_budgets: Optional[Sequence[CustomBudget]] = None,
) -> BudgetOverview:
    """Per-budget rows plus the month's savings picture.

    Actual savings are automatic (income left after needs and wants spend,
    never negative) plus manual (paid expenses against the savings budget).
    The savings target is the savings budget's amount, or the goal's target
    when the month has no savings budget yet.

    ``routing_budgets`` are the custom budgets whose expenses resolve to
    wants; defaults to ``custom_budgets``.
    """
    if routing_budgets is None:
        routing_budgets = custom_budgets
    overview = BudgetOverview()
    for budget in system_budgets or []:
        stats = compute_budget_stats(budget, transactions, categories, routing_budgets)
        overview.system_rows.append(BudgetRow(budget, stats))
    for budget in custom_budgets or []:
        if getattr(budget, 'is_system_budget', False):
            continue
        overview.custom_rows.append(BudgetRow(budget, compute_budget_stats(budget, transactions)))

    spent = ZERO
    for budget_type in ('needs', 'wants'):
        row = overview.row_for(budget_type)
        if row is not None:
            spent += row.stats.used
    savings_row = overview.row_for('savings')

    overview.automatic_savings = max(ZERO, monthly_income - spent)
    overview.manual_savings = savings_row.stats.paid_amount if savings_row else ZERO

    if savings_row is not None:
        target = savings_row.budget.budget_amount
    else:
        target = resolve_budget_limit(goal_map(goals).get('savings'), monthly_income, settings or EngineSettings())
    overview.savings = savings_progress(target, overview.automatic_savings + overview.manual_savings)
    return overview


@dataclass
class DashboardSummary:
    period: Period
    monthly_income: Decimal
    monthly_expenses: Decimal
    remaining_budget: Decimal
    breakdown: FinancialBreakdown
    priorities: Dict[str, PriorityTotal]
    overview: BudgetOverview

    @property
    def show_savings_warning(self) -> bool:
        return self.overview.show_savings_warning


def compose_dashboard_summary(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    system_budgets: Sequence[SystemBudget],
    custom_budgets: Sequence[CustomBudget],
    goals: Sequence[BudgetGoal],
    month: int,
    year: int,
    settings: Optional[EngineSettings] = None,
) -> DashboardSummary:
    """Top-level summary for the zero-indexed ``month`` of ``year``.

    Args:
        transactions: All of the user's transactions.
        categories: Categories used for priority fallback.
        system_budgets: System budgets of any month; only the selected
            month's are shown.
        custom_budgets: Every custom and mini budget of the user.
        goals: Budget goals, used when a month has no savings budget.
        month: Zero-indexed month.
        year: Calendar year.
        settings: Goal mode for the savings target fallback.

    Returns:
        A :class:`DashboardSummary`. Nothing is written anywhere.
    """
    period = month_boundaries(month, year)
    items = list(transactions or [])
    income = monthly_income(items, period.start, period.end)
    expenses = monthly_expenses(items, period.start, period.end)
    breakdown = financial_breakdown(items, categories, custom_budgets, period.start, period.end)

    visible = active_budgets_for_month(custom_budgets, system_budgets, month, year)
    month_system = [b for b in visible if getattr(b, 'is_system_budget', False)]
    month_custom = [b for b in visible if not getattr(b, 'is_system_budget', False)]

    overview = compose_budget_overview(
        month_system, month_custom, items, categories, goals, income, settings,
        routing_budgets=custom_budgets,
    )

    return DashboardSummary(
        period=period,
        monthly_income=income,
        monthly_expenses=expenses,
        remaining_budget=remaining_budget(income, expenses),
        breakdown=breakdown,
        priorities=priority_breakdown(breakdown, income),
        overview=overview,
    )
