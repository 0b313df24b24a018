from datetime import date
from decimal import Decimal

import pytest

from budgetwise.models import BudgetGoal, Category, CustomBudget, Transaction
from budgetwise.reports import (
    adjusted_average,
    estimate_current_month,
    expense_projection,
    financial_health_score,
    health_label,
    monthly_category_breakdown,
    priority_chart_data,
    transactions_frame,
)


def _categories():
    return [
        Category(id='housing', name='Housing', priority='needs', color='#111111'),
        Category(id='dining', name='Dining', priority='wants', color='#222222'),
    ]


def _tx(id, amount, committed, paid=None, type='expense', **kwargs):
    return Transaction(
        id=id, title=id, amount=Decimal(str(amount)), type=type, date=committed,
        is_paid=paid is not None, paid_date=paid, **kwargs,
    )


def test_transactions_frame_uses_effective_month():
    df = transactions_frame([
        _tx('flight', 400, date(2025, 1, 28), paid=date(2025, 2, 3)),
        _tx('salary', 100, date(2025, 1, 31), type='income'),
        _tx('bonus', 50, date(2025, 1, 31), paid=date(2025, 2, 1), type='income'),
    ])
    assert list(df['month']) == ['2025-02', '2025-01', '2025-02']
    assert df['amount'].sum() == pytest.approx(550.0)
    assert transactions_frame([]).empty


def test_monthly_category_breakdown_sorted_with_uncategorized():
    items = [
        _tx('rent', 1500, date(2025, 1, 1), category_id='housing'),
        _tx('pizza', 40, date(2025, 1, 5), category_id='dining'),
        _tx('pasta', 60, date(2025, 1, 6), category_id='dining'),
        _tx('mystery', 200, date(2025, 1, 7)),
        _tx('salary', 5000, date(2025, 1, 15), type='income'),
    ]
    df = monthly_category_breakdown(items, _categories(), 5000)

    assert list(df['name']) == ['Housing', 'Uncategorized', 'Dining']
    assert df.loc[df['category_id'] == 'dining', 'amount'].item() == pytest.approx(100.0)
    assert df.loc[df['category_id'] == 'housing', 'percent_of_income'].item() == pytest.approx(30.0)


def test_priority_chart_data_drops_empty_priorities():
    items = [_tx('rent', 1500, date(2025, 1, 1), category_id='housing')]
    goals = [BudgetGoal(priority='needs', target_percentage=50), BudgetGoal(priority='wants', target_percentage=30)]
    df = priority_chart_data(items, _categories(), goals, 6000)

    assert list(df['priority']) == ['needs', 'wants']
    assert df.loc[df['priority'] == 'needs', 'actual'].item() == pytest.approx(25.0)
    assert df.loc[df['priority'] == 'wants', 'actual'].item() == 0.0


def test_priority_chart_data_counts_custom_budget_expenses_as_wants():
    vacation = CustomBudget(id='vac', name='Vacation', allocated_amount=Decimal('2000'),
                            start_date=date(2025, 1, 1), end_date=date(2025, 3, 31))
    items = [_tx('hotel', 400, date(2025, 1, 10), category_id='housing', custom_budget_id='vac')]
    goals = [BudgetGoal(priority='needs', target_percentage=50), BudgetGoal(priority='wants', target_percentage=30)]
    df = priority_chart_data(items, _categories(), goals, 1000, custom_budgets=[vacation])

    assert df.loc[df['priority'] == 'wants', 'actual'].item() == pytest.approx(40.0)
    assert df.loc[df['priority'] == 'needs', 'actual'].item() == 0.0


def test_adjusted_average_drops_outliers():
    assert adjusted_average([]) == 0.0
    assert adjusted_average([7.0]) == 7.0
    assert adjusted_average([5, 5, 5]) == 5.0
    values = [100, 100, 100, 100, 100, 100, 100, 100, 100, 1000]
    assert adjusted_average(values) == pytest.approx(100.0)


def test_expense_projection_uses_complete_months_only():
    today = date(2025, 7, 10)
    items = [
        _tx(f'rent-{m}', 1500, date(2025, m, 1), paid=date(2025, m, 1), category_id='housing') for m in range(1, 7)
    ]
    items.append(_tx('rent-7', 9999, date(2025, 7, 1), category_id='housing'))
    items.append(_tx('pizza', 60, date(2025, 6, 5), category_id='dining'))
    items.append(_tx('sushi', 60, date(2025, 5, 5), category_id='dining'))
    projection = expense_projection(items, _categories(), today)

    assert list(projection.categories['category_id']) == ['housing', 'dining']
    housing = projection.categories.iloc[0]
    assert housing['average_spend'] == pytest.approx(1500.0)
    assert housing['history'] == [1500.0] * 6
    assert projection.categories.iloc[1]['history'] == [60.0, 60.0, 0.0, 0.0, 0.0, 0.0]
    assert projection.total_projected_monthly == pytest.approx(1520.0)


def test_expense_projection_without_history():
    projection = expense_projection([], _categories(), date(2025, 7, 10))
    assert projection.total_projected_monthly == 0.0
    assert projection.categories.empty


def test_estimate_current_month():
    items = [_tx('a', 300, date(2025, 4, 3)), _tx('pay', 5000, date(2025, 4, 1), type='income')]
    estimate = estimate_current_month(items, 3000, date(2025, 4, 10))

    assert estimate.actual == pytest.approx(300.0)
    assert estimate.remaining == pytest.approx(100.0 * 20)
    assert estimate.total == pytest.approx(2300.0)


def test_financial_health_score_components():
    items = [
        _tx('dec-pay', 5000, date(2024, 12, 15), type='income'),
        _tx('dec-spend', 4500, date(2024, 12, 3), paid=date(2024, 12, 3)),
        _tx('jan-pay', 5000, date(2025, 1, 15), type='income'),
        _tx('jan-spend', 4000, date(2025, 1, 3), paid=date(2025, 1, 3)),
        _tx('jan-unpaid', 900, date(2025, 1, 20)),
    ]
    score = financial_health_score(items, 0, 2025)

    assert score.savings == 50
    assert score.solvency == 30
    assert score.trend == 20
    assert score.score == 100
    assert score.label == 'Excellent'
    assert score.savings_rate == pytest.approx(20.0)


def test_financial_health_score_overspent_month():
    items = [
        _tx('pay', 1000, date(2025, 1, 15), type='income'),
        _tx('spend', 1100, date(2025, 1, 3), paid=date(2025, 1, 3)),
    ]
    score = financial_health_score(items, 0, 2025)

    assert score.savings == 0
    assert score.solvency == 20
    assert score.trend == 0
    assert score.label == 'Needs Work'


def test_health_labels():
    assert health_label(80) == 'Excellent'
    assert health_label(79) == 'Good'
    assert health_label(40) == 'Fair'
    assert health_label(39) == 'Needs Work'
