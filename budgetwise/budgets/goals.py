"""Budget goals, split points and monthly target amounts.

Goals are stored as one row per priority.  In percentage mode the editor
works with two split points on a 0-100 scale: ``needs = split1``,
``wants = split2 - split1`` and ``savings = 100 - split2``.

Fixed Lifestyle Mode is exposed as a policy hook: a callable that receives
the raw target amounts and may redistribute them before the lifecycle
writes anything.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ..config import EngineSettings
from ..defaults import get_config_value
from ..models import PRIORITIES, ZERO, BudgetGoal, SystemBudget, to_money

logger = logging.getLogger(__name__)

FixedLifestylePolicy = Callable[[Dict[str, Decimal], Sequence[SystemBudget], Decimal], Dict[str, Decimal]]


def default_goals() -> list:
    percentages = get_config_value('engine', 'default_goals', default={'needs': 50, 'wants': 30, 'savings': 20})
    return [BudgetGoal(priority=p, target_percentage=float(percentages.get(p, 0))) for p in PRIORITIES]


def goal_map(goals: Iterable[BudgetGoal]) -> Dict[str, BudgetGoal]:
    return {g.priority: g for g in goals or []}


def percentages_from_splits(split1: float, split2: float) -> Dict[str, float]:
    return {
        'needs': split1,
        'wants': split2 - split1,
        'savings': 100 - split2,
    }


def splits_from_goals(goals: Iterable[BudgetGoal]) -> Tuple[float, float]:
    """Inverse of :func:`percentages_from_splits`; falls back to 50/80."""
    by_priority = goal_map(goals)
    if 'needs' not in by_priority or 'wants' not in by_priority:
        return 50.0, 80.0
    needs = by_priority['needs'].target_percentage
    wants = by_priority['wants'].target_percentage
    return needs, needs + wants


def move_split(
    splits: Tuple[float, float],
    thumb: int,
    value: float,
    min_gap: Optional[float] = None,
) -> Tuple[float, float]:
    """Move one split point, keeping both in 0..100 and ``min_gap`` apart.

    Args:
        splits: Current ``(split1, split2)``.
        thumb: ``1`` to move ``split1``, ``2`` to move ``split2``.
        value: Requested position.
        min_gap: Minimum distance between the points (config default 5).
    """
    if min_gap is None:
        min_gap = get_config_value('engine', 'constants', 'min_split_gap', default=5)
    split1, split2 = splits
    constrained = max(0.0, min(100.0, float(value)))
    if thumb == 1:
        return min(constrained, split2 - min_gap), split2
    if thumb == 2:
        return split1, max(constrained, split1 + min_gap)
    raise ValueError(f"thumb must be 1 or 2, got {thumb!r}")


def resolve_budget_limit(goal: Optional[BudgetGoal], monthly_income: Decimal, settings: EngineSettings) -> Decimal:
    """Monthly amount for one goal: income share or the absolute amount."""
    if goal is None:
        return ZERO
    if not settings.is_percentage_mode or goal.is_absolute:
        return to_money(goal.target_amount or 0)
    return to_money(Decimal(monthly_income) * Decimal(str(goal.target_percentage or 0)) / 100)


def target_amounts(
    goals: Iterable[BudgetGoal],
    monthly_income: Decimal,
    settings: EngineSettings,
) -> Dict[str, Decimal]:
    by_priority = goal_map(goals)
    return {p: resolve_budget_limit(by_priority.get(p), monthly_income, settings) for p in PRIORITIES}


def no_adjustment(amounts: Dict[str, Decimal], existing: Sequence[SystemBudget], monthly_income: Decimal) -> Dict[str, Decimal]:
    return dict(amounts)


def cap_needs_at_existing(
    amounts: Dict[str, Decimal],
    existing: Sequence[SystemBudget],
    monthly_income: Decimal,
) -> Dict[str, Decimal]:
    """Keep the needs budget at its current amount when income rises.

    The difference goes to savings; wants stay percentage based.
    """
    adjusted = dict(amounts)
    current = next((b for b in existing or [] if b.system_budget_type == 'needs'), None)
    if current is None or current.budget_amount <= 0 or monthly_income <= 0:
        return adjusted
    if adjusted.get('needs', ZERO) > current.budget_amount:
        surplus = adjusted['needs'] - current.budget_amount
        adjusted['needs'] = current.budget_amount
        adjusted['savings'] = adjusted.get('savings', ZERO) + surplus
    return adjusted


def historical_baseline(average_income: Decimal, goals: Iterable[BudgetGoal]) -> FixedLifestylePolicy:
    """Policy that sizes every budget from ``average_income``.

    Income above the average is added to savings in full.
    """
    by_priority = goal_map(goals)

    def policy(amounts: Dict[str, Decimal], existing: Sequence[SystemBudget], monthly_income: Decimal) -> Dict[str, Decimal]:
        if average_income <= 0 or monthly_income <= average_income:
            return dict(amounts)
        overflow = monthly_income - average_income
        adjusted = {}
        for priority in PRIORITIES:
            goal = by_priority.get(priority)
            pct = Decimal(str(goal.target_percentage)) if goal else ZERO
            adjusted[priority] = to_money(average_income * pct / 100)
        adjusted['savings'] += overflow
        return adjusted

    return policy


POLICIES: Mapping[str, FixedLifestylePolicy] = {
    'none': no_adjustment,
    'cap_needs_at_existing': cap_needs_at_existing,
}


def select_policy(settings: EngineSettings, override: Optional[FixedLifestylePolicy] = None) -> FixedLifestylePolicy:
    """Pick the Fixed Lifestyle policy for ``settings``.

    Only applies in percentage mode; absolute goals are already fixed.
    """
    if not settings.fixed_lifestyle_mode or not settings.is_percentage_mode:
        return no_adjustment
    if override is not None:
        return override
    try:
        return POLICIES[settings.fixed_lifestyle_policy]
    except KeyError:
        logger.error("Unknown fixed lifestyle policy %r, leaving amounts unadjusted", settings.fixed_lifestyle_policy)
        return no_adjustment
