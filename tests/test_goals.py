import logging
from datetime import date
from decimal import Decimal

import pytest

from budgetwise.budgets.goals import (
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
from budgetwise.config import EngineSettings
from budgetwise.models import BudgetGoal, SystemBudget


def _goals():
    return [
        BudgetGoal(priority='needs', target_percentage=50),
        BudgetGoal(priority='wants', target_percentage=30),
        BudgetGoal(priority='savings', target_percentage=20),
    ]


def _needs_budget(amount):
    return SystemBudget(
        id='needs-1', name='Needs', budget_amount=Decimal(amount),
        start_date=date(2025, 1, 1), end_date=date(2025, 1, 31), system_budget_type='needs',
    )


def test_default_goals_are_50_30_20():
    assert {g.priority: g.target_percentage for g in default_goals()} == {'needs': 50.0, 'wants': 30.0, 'savings': 20.0}


def test_splits_round_trip_with_goal_percentages():
    assert splits_from_goals(_goals()) == (50, 80)
    assert percentages_from_splits(50, 80) == {'needs': 50, 'wants': 30, 'savings': 20}
    assert splits_from_goals([]) == (50.0, 80.0)


def test_move_split_keeps_minimum_gap_and_bounds():
    assert move_split((50, 80), 1, 90) == (75, 80)
    assert move_split((50, 80), 2, 10) == (50, 55)
    assert move_split((50, 80), 2, 150) == (50, 100.0)
    assert move_split((50, 80), 1, -20) == (0.0, 80)
    with pytest.raises(ValueError):
        move_split((50, 80), 3, 10)


def test_target_amounts_for_6200_income():
    amounts = target_amounts(_goals(), Decimal('6200'), EngineSettings())
    assert amounts == {'needs': Decimal('3100.00'), 'wants': Decimal('1860.00'), 'savings': Decimal('1240.00')}


def test_target_amounts_absolute_mode():
    goals = [
        BudgetGoal(priority='needs', target_percentage=50, target_amount=Decimal('2500')),
        BudgetGoal(priority='wants', target_percentage=30, target_amount=Decimal('900')),
    ]
    amounts = target_amounts(goals, Decimal('6200'), EngineSettings(goal_mode=False))
    assert amounts == {'needs': Decimal('2500.00'), 'wants': Decimal('900.00'), 'savings': Decimal('0')}


def test_per_goal_absolute_flag_in_percentage_mode():
    goals = _goals()
    goals[2] = BudgetGoal(priority='savings', is_absolute=True, target_amount=Decimal('1000'))
    amounts = target_amounts(goals, Decimal('6200'), EngineSettings())
    assert amounts['savings'] == Decimal('1000.00')
    assert amounts['needs'] == Decimal('3100.00')


def test_cap_needs_moves_raise_into_savings():
    amounts = target_amounts(_goals(), Decimal('7000'), EngineSettings())
    adjusted = cap_needs_at_existing(amounts, [_needs_budget('3100')], Decimal('7000'))

    assert adjusted['needs'] == Decimal('3100')
    assert adjusted['wants'] == Decimal('2100.00')
    assert adjusted['savings'] == Decimal('1400.00') + Decimal('400.00')


def test_cap_needs_without_existing_budget_is_noop():
    amounts = target_amounts(_goals(), Decimal('7000'), EngineSettings())
    assert cap_needs_at_existing(amounts, [], Decimal('7000')) == amounts


def test_historical_baseline_sends_overflow_to_savings():
    policy = historical_baseline(Decimal('6000'), _goals())
    amounts = target_amounts(_goals(), Decimal('7000'), EngineSettings())
    adjusted = policy(amounts, [], Decimal('7000'))

    assert adjusted['needs'] == Decimal('3000.00')
    assert adjusted['wants'] == Decimal('1800.00')
    assert adjusted['savings'] == Decimal('2200.00')
    assert sum(adjusted.values()) == Decimal('7000.00')


def test_select_policy():
    assert select_policy(EngineSettings()) is no_adjustment
    fixed = EngineSettings(fixed_lifestyle_mode=True)
    assert select_policy(fixed) is cap_needs_at_existing
    assert select_policy(EngineSettings(fixed_lifestyle_mode=True, goal_mode=False)) is no_adjustment

    custom = historical_baseline(Decimal('5000'), _goals())
    assert select_policy(fixed, custom) is custom


def test_unknown_policy_name_falls_back_to_no_adjustment(caplog):
    with caplog.at_level(logging.ERROR, logger='budgetwise.budgets.goals'):
        policy = select_policy(EngineSettings(fixed_lifestyle_mode=True, fixed_lifestyle_policy='nope'))

    assert policy is no_adjustment
    assert 'nope' in caplog.text
