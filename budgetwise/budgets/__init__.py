"""Budget-specific calculations and lifecycle.

This package provides:
- Per-budget statistics and priority rollups
- Goals, split points and Fixed Lifestyle policies
- System budget creation and synchronisation
- Custom and mini budget status changes
"""

from .calculations import (
    AllocationStats,
    BudgetStats,
    FinancialBreakdown,
    SavingsProgress,
    bonus_savings_potential,
    compute_budget_stats,
    custom_budget_allocation_stats,
    custom_budget_stats,
    financial_breakdown,
    historical_average_income,
    percentage,
    savings_progress,
    system_budget_stats,
)
from .goals import (
    cap_needs_at_existing,
    default_goals,
    historical_baseline,
    move_split,
    no_adjustment,
    percentages_from_splits,
    select_policy,
    splits_from_goals,
    target_amounts,
)
from .lifecycle import (
    SyncResult,
    SystemBudgetStore,
    SystemBudgetSync,
    ensure_system_budgets,
    snapshot_future_budgets,
)
from .custom import (
    active_budgets_for_month,
    cascade_delete,
    complete_budget,
    initial_status,
    reactivate_budget,
)

__all__ = [
    # Calculations
    'AllocationStats',
    'BudgetStats',
    'FinancialBreakdown',
    'SavingsProgress',
    'bonus_savings_potential',
    'compute_budget_stats',
    'custom_budget_allocation_stats',
    'custom_budget_stats',
    'financial_breakdown',
    'historical_average_income',
    'percentage',
    'savings_progress',
    'system_budget_stats',
    # Goals
    'cap_needs_at_existing',
    'default_goals',
    'historical_baseline',
    'move_split',
    'no_adjustment',
    'percentages_from_splits',
    'select_policy',
    'splits_from_goals',
    'target_amounts',
    # Lifecycle
    'SyncResult',
    'SystemBudgetStore',
    'SystemBudgetSync',
    'ensure_system_budgets',
    'snapshot_future_budgets',
    # Custom budgets
    'active_budgets_for_month',
    'cascade_delete',
    'complete_budget',
    'initial_status',
    'reactivate_budget',
]
