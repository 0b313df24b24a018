from datetime import date
from decimal import Decimal

from budgetwise.cache import DerivationCache, fingerprint
from budgetwise.config import EngineSettings
from budgetwise.defaults import get_config_value
from budgetwise.models import BudgetGoal, CustomBudget, SystemBudget


def test_engine_settings_from_config_with_overrides():
    settings = EngineSettings.from_config({'fixed_lifestyle_mode': True, 'unknown_key': 1})
    assert settings.fixed_lifestyle_mode
    assert settings.currency_symbol == '$'
    assert settings.drift_tolerance == Decimal('0.01')
    assert settings.is_percentage_mode
    assert not EngineSettings(goal_mode=False).is_percentage_mode


def test_get_config_value_defaults_for_missing_keys():
    assert get_config_value('engine', 'constants', 'min_split_gap') == 5
    assert get_config_value('engine', 'nope', default='x') == 'x'
    assert get_config_value('missing_file', 'a', default=3) == 3


def test_fingerprint_is_stable_and_type_aware():
    goals = [BudgetGoal(priority='needs', target_percentage=50)]
    assert fingerprint(goals, Decimal('1.00')) == fingerprint(list(goals), Decimal('1.00'))
    assert fingerprint(goals, Decimal('1.00')) != fingerprint(goals, Decimal('1.01'))

    system = SystemBudget(id='b', name='B', budget_amount=Decimal('1'), start_date=date(2025, 1, 1),
                          end_date=date(2025, 1, 31), system_budget_type='needs')
    custom = CustomBudget(id='b', name='B', allocated_amount=Decimal('1'), start_date=date(2025, 1, 1),
                          end_date=date(2025, 1, 31))
    assert fingerprint(system) != fingerprint(custom)


def test_derivation_cache_reuses_results():
    cache = DerivationCache(max_entries=2)
    calls = []

    def total(values):
        calls.append(values)
        return sum(values)

    assert cache.get_or_compute('total', total, [1, 2]) == 3
    assert cache.get_or_compute('total', total, [1, 2]) == 3
    assert cache.get_or_compute('total', total, [3]) == 3
    cache.get_or_compute('total', total, [4])
    cache.get_or_compute('total', total, [1, 2])

    assert cache.hits == 1
    assert cache.misses == 4
    assert len(calls) == 4
