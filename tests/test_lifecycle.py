import logging
import sqlite3
import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal

from budgetwise.budgets.lifecycle import SystemBudgetSync, ensure_system_budgets, snapshot_future_budgets
from budgetwise.config import EngineSettings
from budgetwise.models import BudgetGoal, SystemBudget, Transaction


class FakeStore:
    """In-memory store that records every call."""

    def __init__(self, budgets=None, fail_on=None):
        self.budgets = list(budgets or [])
        self.calls = []
        self.fail_on = fail_on or set()
        self._next = 0

    def find_system_budgets(self, budget_type=None, start=None, end=None):
        self.calls.append(('find', budget_type, start, end))
        return [
            b for b in self.budgets
            if (budget_type is None or b.system_budget_type == budget_type)
            and (start is None or b.start_date == start)
            and (end is None or b.end_date == end)
        ]

    def create_system_budget(self, budget):
        self.calls.append(('create', budget.system_budget_type))
        if budget.system_budget_type in self.fail_on:
            raise sqlite3.OperationalError('database is locked')
        self._next += 1
        created = replace(budget, id=f'sb{self._next}')
        self.budgets.append(created)
        return created

    def update_system_budget(self, budget_id, budget_amount):
        self.calls.append(('update', budget_id))
        for i, b in enumerate(self.budgets):
            if b.id == budget_id:
                if b.system_budget_type in self.fail_on:
                    raise ConnectionError('network down')
                self.budgets[i] = replace(b, budget_amount=budget_amount)
                return
        raise ValueError(budget_id)

    def writes(self):
        return [c for c in self.calls if c[0] in ('create', 'update')]


def _goals():
    return [
        BudgetGoal(priority='needs', target_percentage=50),
        BudgetGoal(priority='wants', target_percentage=30),
        BudgetGoal(priority='savings', target_percentage=20),
    ]


def _income(amount, day=date(2025, 1, 15)):
    return Transaction(id=f'inc-{day}', title='Salary', amount=Decimal(amount), type='income', date=day)


def _budget(kind, amount, id=None, month=1, end=31):
    return SystemBudget(
        id=id or f'{kind}-{month}', name=kind.capitalize(), budget_amount=Decimal(amount),
        start_date=date(2025, month, 1), end_date=date(2025, month, end), system_budget_type=kind,
    )


def _amounts(store):
    return {b.system_budget_type: b.budget_amount for b in store.budgets}


def test_creates_missing_budgets_from_income_and_goals():
    store = FakeStore()
    result = ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], EngineSettings())

    assert len(result.created) == 3
    assert _amounts(store) == {'needs': Decimal('3100.00'), 'wants': Decimal('1860.00'), 'savings': Decimal('1240.00')}
    needs = next(b for b in store.budgets if b.system_budget_type == 'needs')
    assert needs.name == 'Needs'
    assert (needs.start_date, needs.end_date) == (date(2025, 1, 1), date(2025, 1, 31))
    assert needs.color == '#448EEF'


def test_misconfigured_policy_still_creates_budgets():
    store = FakeStore()
    settings = EngineSettings(fixed_lifestyle_mode=True, fixed_lifestyle_policy='typo')
    result = ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], settings)

    assert len(result.created) == 3 and not result.failed
    assert _amounts(store)['needs'] == Decimal('3100.00')


def test_second_run_is_idempotent():
    store = FakeStore()
    settings = EngineSettings()
    ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], settings)
    writes_after_first = len(store.writes())

    result = ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], settings)

    assert len(store.writes()) == writes_after_first
    assert not result.created and not result.updated
    assert len(result.unchanged) == 3


def test_updates_only_when_drift_exceeds_tolerance():
    store = FakeStore([
        _budget('needs', '3100.01'),
        _budget('wants', '1800.00'),
        _budget('savings', '1240.00'),
    ])
    result = ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], EngineSettings())

    assert result.updated == ['wants-1']
    assert set(result.unchanged) == {'needs-1', 'savings-1'}
    assert _amounts(store)['wants'] == Decimal('1860.00')
    assert _amounts(store)['needs'] == Decimal('3100.01')


def test_no_goals_means_no_store_calls():
    store = FakeStore()
    result = ensure_system_budgets(store, 0, 2025, [], [_income('6200')], EngineSettings())

    assert result.skipped == 'no_goals'
    assert store.calls == []


def test_uses_preloaded_budgets_without_querying():
    existing = [_budget('needs', '3100'), _budget('wants', '1860'), _budget('savings', '1240')]
    store = FakeStore(existing)
    ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], EngineSettings(), existing=existing)

    assert store.calls == []


def test_store_failures_are_logged_and_contained(caplog):
    store = FakeStore([_budget('wants', '100')], fail_on={'needs', 'wants'})
    with caplog.at_level(logging.ERROR, logger='budgetwise.budgets.lifecycle'):
        result = ensure_system_budgets(store, 0, 2025, _goals(), [_income('6200')], EngineSettings())

    assert set(result.failed) == {'needs', 'wants'}
    assert len(result.created) == 1
    assert 'Failed to sync needs budget' in caplog.text


def test_preserve_past_budgets_only_fills_zero_amounts():
    store = FakeStore([_budget('needs', '0'), _budget('wants', '1000'), _budget('savings', '1240')])
    settings = EngineSettings(preserve_past_budgets=True)
    result = ensure_system_budgets(
        store, 0, 2025, _goals(), [_income('6200')], settings, today=date(2025, 3, 10)
    )

    assert result.updated == ['needs-1']
    assert _amounts(store)['needs'] == Decimal('3100.00')
    assert _amounts(store)['wants'] == Decimal('1000')


def test_preserve_past_budgets_still_updates_current_month():
    store = FakeStore([_budget('needs', '0'), _budget('wants', '1000'), _budget('savings', '1240')])
    settings = EngineSettings(preserve_past_budgets=True)
    result = ensure_system_budgets(
        store, 0, 2025, _goals(), [_income('6200')], settings, today=date(2025, 1, 20)
    )
    assert set(result.updated) == {'needs-1', 'wants-1'}


def test_fixed_lifestyle_mode_caps_needs():
    store = FakeStore([_budget('needs', '3100'), _budget('wants', '1860'), _budget('savings', '1240')])
    settings = EngineSettings(fixed_lifestyle_mode=True)
    ensure_system_budgets(store, 0, 2025, _goals(), [_income('7000')], settings)

    assert _amounts(store) == {'needs': Decimal('3100'), 'wants': Decimal('2100.00'), 'savings': Decimal('1800.00')}


def test_sync_gate_skips_unchanged_inputs():
    existing = [_budget('needs', '3100'), _budget('wants', '1860'), _budget('savings', '1240')]
    store = FakeStore(existing)
    sync = SystemBudgetSync(store, EngineSettings())

    first = sync.sync('user-1', 0, 2025, _goals(), [_income('6200')], existing=existing)
    second = sync.sync('user-1', 0, 2025, _goals(), [_income('6200')], existing=existing)

    assert first.skipped is None and len(first.unchanged) == 3
    assert second.skipped == 'unchanged'
    assert store.calls == []


def test_sync_gate_reruns_when_income_changes():
    existing = [_budget('needs', '3100'), _budget('wants', '1860'), _budget('savings', '1240')]
    store = FakeStore(existing)
    sync = SystemBudgetSync(store, EngineSettings())
    sync.sync('user-1', 0, 2025, _goals(), [_income('6200')], existing=existing)

    result = sync.sync('user-1', 0, 2025, _goals(), [_income('6200'), _income('800', date(2025, 1, 30))],
                       existing=existing)
    assert len(result.updated) == 3


def test_sync_gate_allows_one_sync_in_flight_per_key():
    entered = threading.Event()
    release = threading.Event()

    class SlowStore(FakeStore):
        def find_system_budgets(self, *args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return super().find_system_budgets(*args, **kwargs)

    store = SlowStore()
    sync = SystemBudgetSync(store, EngineSettings())
    results = []
    worker = threading.Thread(
        target=lambda: results.append(sync.sync('user-1', 0, 2025, _goals(), [_income('6200')]))
    )
    worker.start()
    assert entered.wait(timeout=5)

    concurrent = sync.sync('user-1', 0, 2025, _goals(), [_income('6200')])
    other_month = sync.sync('user-1', 1, 2025, [], [])
    release.set()
    worker.join(timeout=5)

    assert concurrent.skipped == 'in_flight'
    assert other_month.skipped == 'no_goals'
    assert len(results[0].created) == 3
    assert len(store.writes()) == 3


def test_snapshot_future_budgets_leaves_past_months():
    store = FakeStore([
        _budget('savings', '1240', month=1),
        _budget('savings', '1240', month=2, end=28),
        _budget('savings', '1240', month=3),
    ])
    goal = BudgetGoal(priority='savings', target_percentage=25)
    transactions = [_income('6200', date(2025, m, 15)) for m in (1, 2, 3)]

    updated = snapshot_future_budgets(store, goal, transactions, EngineSettings(), today=date(2025, 2, 10))

    assert updated == ['savings-2', 'savings-3']
    by_id = {b.id: b.budget_amount for b in store.budgets}
    assert by_id['savings-1'] == Decimal('1240')
    assert by_id['savings-2'] == Decimal('1550.00')
