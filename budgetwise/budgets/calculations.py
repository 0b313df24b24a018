"""Budget statistics and aggregation.

This module computes per-budget consumption (paid, unpaid, remaining,
overage), rolls expenses up by priority, and measures savings progress.
Needs and wants budgets drain: spend eats into the allocation.  Savings
budgets fill: progress accumulates toward a target.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..dates import is_date_in_range, month_boundaries, shift_month
from ..defaults import get_config_value
from ..engine import effective_date, is_transaction_in_range, settlement_total
from ..models import (
    PRIORITIES,
    ZERO,
    Category,
    CustomBudget,
    CustomBudgetAllocation,
    SystemBudget,
    Transaction,
    to_money,
)
from ..priority import PriorityResolver


def percentage(used: Decimal, allocated: Decimal) -> float:
    """``used / allocated * 100``; 0 when nothing is allocated."""
    if allocated is None or allocated <= 0:
        return 0.0
    return float(used / allocated * 100)


@dataclass(frozen=True)
class BudgetStats:
    allocated: Decimal
    paid_amount: Decimal
    unpaid_amount: Decimal
    remaining: Decimal
    is_over: bool
    percentage_used: float
    transaction_count: int = 0
    is_savings: bool = False

    @property
    def used(self) -> Decimal:
        return self.paid_amount + self.unpaid_amount

    @property
    def remaining_display(self) -> Decimal:
        """Magnitude shown next to the status label (overage when over)."""
        return abs(self.remaining)

    @property
    def status_label(self) -> str:
        if self.is_savings:
            return 'Surplus' if self.is_over else 'Shortfall'
        return 'Over Limit' if self.is_over else 'Under Limit'


def _stats(allocated: Decimal, paid: Decimal, unpaid: Decimal, count: int, is_savings: bool = False) -> BudgetStats:
    used = paid + unpaid
    remaining = allocated - used
    return BudgetStats(
        allocated=allocated,
        paid_amount=paid,
        unpaid_amount=unpaid,
        remaining=remaining,
        is_over=remaining < 0,
        percentage_used=percentage(used, allocated),
        transaction_count=count,
        is_savings=is_savings,
    )


def system_budget_stats(
    budget: SystemBudget,
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]] = None,
    custom_budgets: Optional[Iterable] = None,
) -> BudgetStats:
    """Settlement-view consumption of one monthly system budget.

    Paid expenses count in the month of their paid date, unpaid expenses in
    the month of their commitment date.
    """
    resolve = PriorityResolver(categories, custom_budgets)
    paid = unpaid = ZERO
    count = 0
    for t in transactions or []:
        if not t.is_expense or resolve(t) != budget.system_budget_type:
            continue
        if not is_date_in_range(effective_date(t), budget.start_date, budget.end_date):
            continue
        count += 1
        if t.is_paid:
            paid += t.amount
        else:
            unpaid += t.amount
    return _stats(budget.budget_amount, paid, unpaid, count, is_savings=budget.system_budget_type == 'savings')


def custom_budget_stats(budget: CustomBudget, transactions: Iterable[Transaction]) -> BudgetStats:
    """Commitment-view consumption of a custom or mini budget (no date filter)."""
    paid = unpaid = ZERO
    count = 0
    for t in transactions or []:
        if not t.is_expense or t.custom_budget_id != budget.id:
            continue
        count += 1
        if t.is_paid:
            paid += t.amount
        else:
            unpaid += t.amount
    return _stats(budget.allocated_amount, paid, unpaid, count)


def compute_budget_stats(
    budget: Any,
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]] = None,
    custom_budgets: Optional[Iterable] = None,
) -> BudgetStats:
    """Stats for any budget, dispatching on system vs custom/mini.

    ``custom_budgets`` lets the priority resolver route custom-budget
    expenses into the wants system budget.
    """
    if getattr(budget, 'is_system_budget', False):
        return system_budget_stats(budget, transactions, categories, custom_budgets)
    return custom_budget_stats(budget, transactions)


@dataclass
class PaidUnpaid:
    paid: Decimal = ZERO
    unpaid: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.paid + self.unpaid

    def add(self, transaction: Transaction) -> None:
        if transaction.is_paid:
            self.paid += transaction.amount
        else:
            self.unpaid += transaction.amount


@dataclass
class FinancialBreakdown:
    """Expense totals for one period split by priority.

    Wants are further split into direct spending and spending routed
    through custom budgets.
    """

    needs: PaidUnpaid = field(default_factory=PaidUnpaid)
    wants_direct: PaidUnpaid = field(default_factory=PaidUnpaid)
    wants_custom: PaidUnpaid = field(default_factory=PaidUnpaid)
    savings: PaidUnpaid = field(default_factory=PaidUnpaid)
    uncategorized: PaidUnpaid = field(default_factory=PaidUnpaid)

    @property
    def wants_paid(self) -> Decimal:
        return self.wants_direct.paid + self.wants_custom.paid

    @property
    def wants_unpaid(self) -> Decimal:
        return self.wants_direct.unpaid + self.wants_custom.unpaid

    @property
    def wants_total(self) -> Decimal:
        return self.wants_direct.total + self.wants_custom.total

    def total_for(self, priority: Optional[str]) -> Decimal:
        if priority == 'needs':
            return self.needs.total
        if priority == 'wants':
            return self.wants_total
        if priority == 'savings':
            return self.savings.total
        return self.uncategorized.total


def financial_breakdown(
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]],
    custom_budgets: Optional[Iterable],
    start: Any,
    end: Any,
) -> FinancialBreakdown:
    """Single pass over the period's expenses (settlement view)."""
    resolve = PriorityResolver(categories, custom_budgets)
    result = FinancialBreakdown()
    for t in transactions or []:
        if not t.is_expense or not is_transaction_in_range(t, start, end):
            continue
        priority = resolve(t)
        if priority == 'needs':
            result.needs.add(t)
        elif priority == 'wants':
            (result.wants_custom if resolve.is_custom(t) else result.wants_direct).add(t)
        elif priority == 'savings':
            result.savings.add(t)
        else:
            result.uncategorized.add(t)
    return result


@dataclass(frozen=True)
class SavingsProgress:
    target: Decimal
    actual: Decimal

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.target - self.actual)

    @property
    def surplus(self) -> Decimal:
        return max(ZERO, self.actual - self.target)

    @property
    def percentage(self) -> float:
        return percentage(self.actual, self.target)

    @property
    def status_label(self) -> str:
        return 'Surplus' if self.actual > self.target else 'Shortfall'


def savings_progress(target: Any, actual: Any) -> SavingsProgress:
    return SavingsProgress(target=to_money(target), actual=to_money(actual))


@dataclass(frozen=True)
class AllocationSpending:
    allocated: Decimal
    spent: Decimal
    remaining: Decimal
    percentage_used: float


@dataclass(frozen=True)
class AllocationStats:
    total_allocated: Decimal
    unallocated: Decimal
    unallocated_spent: Decimal
    unallocated_remaining: Decimal
    category_spending: Dict[str, AllocationSpending]


def custom_budget_allocation_stats(
    budget: CustomBudget,
    allocations: Sequence[CustomBudgetAllocation],
    transactions: Iterable[Transaction],
) -> AllocationStats:
    """Per-category sub-allocation usage inside one custom budget."""
    expenses = [t for t in transactions or [] if t.is_expense and t.custom_budget_id == budget.id]
    own = [a for a in allocations or [] if a.custom_budget_id == budget.id]
    total_allocated = sum((a.allocated_amount for a in own), ZERO)
    unallocated = budget.allocated_amount - total_allocated

    spending: Dict[str, AllocationSpending] = {}
    for allocation in own:
        spent = sum((t.amount for t in expenses if t.category_id == allocation.category_id), ZERO)
        spending[allocation.category_id] = AllocationSpending(
            allocated=allocation.allocated_amount,
            spent=spent,
            remaining=allocation.allocated_amount - spent,
            percentage_used=percentage(spent, allocation.allocated_amount),
        )

    allocated_ids = {a.category_id for a in own}
    unallocated_spent = sum(
        (t.amount for t in expenses if not t.category_id or t.category_id not in allocated_ids), ZERO
    )
    return AllocationStats(
        total_allocated=total_allocated,
        unallocated=unallocated,
        unallocated_spent=unallocated_spent,
        unallocated_remaining=unallocated - unallocated_spent,
        category_spending=spending,
    )


def bonus_savings_potential(
    system_budgets: Sequence[SystemBudget],
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[Category]],
    custom_budgets: Optional[Iterable],
    start: Any,
    end: Any,
) -> Decimal:
    """Unspent needs and wants capacity: ``(needs + wants limits) - spending``.

    Negative when spending exceeds the combined limits.
    """
    breakdown = financial_breakdown(transactions, categories, custom_budgets, start, end)
    potential = ZERO
    for priority in ('needs', 'wants'):
        budget = next((b for b in system_budgets if b.system_budget_type == priority), None)
        if budget is not None:
            potential += budget.budget_amount - breakdown.total_for(priority)
    return potential


def historical_average_income(
    transactions: Iterable[Transaction],
    month: int,
    year: int,
    lookback_months: Optional[int] = None,
) -> Decimal:
    """Average monthly income over the ``lookback_months`` before ``(month, year)``."""
    if lookback_months is None:
        lookback_months = get_config_value('engine', 'constants', 'income_lookback_months', default=3)
    items: List[Transaction] = list(transactions or [])
    if not items or lookback_months <= 0:
        return ZERO
    total = ZERO
    for offset in range(1, lookback_months + 1):
        period = month_boundaries(*shift_month(month, year, -offset))
        total += settlement_total(items, period.start, period.end, type='income')
    return to_money(total / lookback_months)


def priority_totals(breakdown: FinancialBreakdown) -> Dict[str, Decimal]:
    return {priority: breakdown.total_for(priority) for priority in PRIORITIES}
