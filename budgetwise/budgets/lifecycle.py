"""System budget lifecycle: create, keep in sync, never block the dashboard.

Each ``(system budget type, month)`` moves through ``absent -> created ->
synced``.  On every dashboard load :func:`ensure_system_budgets` sizes the
three monthly envelopes from income and goals, creates missing ones, and
corrects amounts that drifted by more than the configured tolerance.
Persistence failures are logged and reported in the result; they are never
raised to the caller.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Hashable, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..cache import fingerprint
from ..config import EngineSettings
from ..dates import first_day_of_month, month_boundaries, month_of
from ..defaults import get_config_value
from ..engine import settlement_total
from ..models import PRIORITIES, BudgetGoal, SystemBudget, Transaction, to_money
from .goals import FixedLifestylePolicy, resolve_budget_limit, select_policy, target_amounts

logger = logging.getLogger(__name__)

PERSISTENCE_ERRORS = (sqlite3.Error, OSError, ValueError, RuntimeError)


class SystemBudgetStore(Protocol):
    def find_system_budgets(
        self,
        budget_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[SystemBudget]:
        ...

    def create_system_budget(self, budget: SystemBudget) -> SystemBudget:
        ...

    def update_system_budget(self, budget_id: str, budget_amount: Decimal) -> None:
        ...


@dataclass
class SyncResult:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: Optional[str] = None

    @property
    def wrote(self) -> bool:
        return bool(self.created or self.updated)


def _new_system_budget(budget_type: str, amount: Decimal, start: date, end: date) -> SystemBudget:
    colors = get_config_value('engine', 'system_budget_colors', default={})
    return SystemBudget(
        id='',
        name=budget_type.capitalize(),
        budget_amount=amount,
        start_date=start,
        end_date=end,
        system_budget_type=budget_type,
        color=colors.get(budget_type),
    )


def ensure_system_budgets(
    store: SystemBudgetStore,
    month: int,
    year: int,
    goals: Sequence[BudgetGoal],
    transactions: Iterable[Transaction],
    settings: EngineSettings,
    existing: Optional[Sequence[SystemBudget]] = None,
    today: Optional[date] = None,
    policy: Optional[FixedLifestylePolicy] = None,
) -> SyncResult:
    """Create or correct the needs/wants/savings budgets of one month.

    Args:
        store: Persistence collaborator.
        month: Zero-indexed month.
        year: Calendar year.
        goals: The user's budget goals; nothing happens when empty.
        transactions: Used to derive the month's income.
        settings: Goal mode, Fixed Lifestyle Mode and drift tolerance.
        existing: The month's system budgets if already loaded; fetched from
            ``store`` otherwise.
        today: Reference date for ``preserve_past_budgets``.
        policy: Explicit Fixed Lifestyle policy overriding ``settings``.

    Returns:
        A :class:`SyncResult` listing what was created, updated or failed.
    """
    result = SyncResult()
    if not goals:
        result.skipped = 'no_goals'
        return result

    period = month_boundaries(month, year)
    if existing is None:
        try:
            existing = store.find_system_budgets(start=period.start, end=period.end)
        except PERSISTENCE_ERRORS as exc:
            logger.error("Could not load system budgets for %s: %s", period.label, exc)
            result.failed.extend(PRIORITIES)
            return result
    month_budgets = [
        b for b in existing
        if b.start_date == period.start and b.end_date == period.end
    ]

    income = settlement_total(transactions, period.start, period.end, type='income')
    amounts = target_amounts(goals, income, settings)
    amounts = select_policy(settings, policy)(amounts, month_budgets, income)

    is_past = settings.preserve_past_budgets and today is not None and period.end < today

    for budget_type in PRIORITIES:
        amount = to_money(amounts.get(budget_type, 0))
        current = next((b for b in month_budgets if b.system_budget_type == budget_type), None)
        try:
            if current is None:
                created = store.create_system_budget(_new_system_budget(budget_type, amount, period.start, period.end))
                logger.info("Created %s budget for %s: %s", budget_type, period.label, amount)
                result.created.append(created.id or budget_type)
                continue

            drifted = abs(current.budget_amount - amount) > settings.drift_tolerance
            may_update = not is_past or current.budget_amount == 0
            if drifted and may_update:
                store.update_system_budget(current.id, amount)
                logger.info(
                    "Updated %s budget for %s: %s -> %s", budget_type, period.label, current.budget_amount, amount
                )
                result.updated.append(current.id)
            else:
                result.unchanged.append(current.id)
        except PERSISTENCE_ERRORS as exc:
            logger.error("Failed to sync %s budget for %s: %s", budget_type, period.label, exc)
            result.failed.append(budget_type)

    return result


class SystemBudgetSync:
    """Gate around :func:`ensure_system_budgets`.

    At most one sync runs per ``(user, month, year)`` key; a concurrent call
    for the same key is skipped.  A call whose inputs match the last
    successful sync for that key performs no store calls at all.
    """

    def __init__(self, store: SystemBudgetStore, settings: EngineSettings, policy: Optional[FixedLifestylePolicy] = None):
        self.store = store
        self.settings = settings
        self.policy = policy
        self._registry_lock = threading.Lock()
        self._locks: Dict[Tuple[Hashable, int, int], threading.Lock] = {}
        self._synced: Dict[Tuple[Hashable, int, int], str] = {}
        self._requested: Dict[Tuple[Hashable, int, int], str] = {}

    def _lock_for(self, key: Tuple[Hashable, int, int]) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def sync(
        self,
        user: Hashable,
        month: int,
        year: int,
        goals: Sequence[BudgetGoal],
        transactions: Sequence[Transaction],
        existing: Optional[Sequence[SystemBudget]] = None,
        today: Optional[date] = None,
    ) -> SyncResult:
        key = (user, month, year)
        period = month_boundaries(month, year)
        income = settlement_total(transactions, period.start, period.end, type='income')
        digest = fingerprint(list(goals or []), list(existing or []), income, self.settings)

        if self._synced.get(key) == digest:
            return SyncResult(skipped='unchanged')

        self._requested[key] = digest
        lock = self._lock_for(key)
        if not lock.acquire(blocking=False):
            logger.debug("Sync already in flight for %s", key)
            return SyncResult(skipped='in_flight')
        try:
            result = ensure_system_budgets(
                self.store, month, year, goals, transactions, self.settings,
                existing=existing, today=today, policy=self.policy,
            )
            # Writes change the stored budgets, so the next load carries new inputs.
            superseded = self._requested.get(key) != digest
            if not result.failed and not result.wrote and not superseded:
                self._synced[key] = digest
            return result
        finally:
            lock.release()

    def invalidate(self, user: Hashable, month: int, year: int) -> None:
        self._synced.pop((user, month, year), None)


def snapshot_future_budgets(
    store: SystemBudgetStore,
    goal: BudgetGoal,
    transactions: Iterable[Transaction],
    settings: EngineSettings,
    today: date,
) -> List[str]:
    """Re-size current and future system budgets after ``goal`` changed.

    Budgets of months before ``today``'s month are left untouched.

    Returns:
        Ids of the budgets that were updated.
    """
    horizon = first_day_of_month(today.month - 1, today.year)
    try:
        budgets = store.find_system_budgets(budget_type=goal.priority)
    except PERSISTENCE_ERRORS as exc:
        logger.error("Could not load %s budgets for goal snapshot: %s", goal.priority, exc)
        return []

    items = list(transactions or [])
    updated: List[str] = []
    for budget in budgets:
        if budget.start_date is None or budget.start_date < horizon:
            continue
        period = month_of(budget.start_date)
        income = settlement_total(items, period.start, period.end, type='income')
        amount = resolve_budget_limit(goal, income, settings)
        if abs(budget.budget_amount - amount) <= settings.drift_tolerance:
            continue
        try:
            store.update_system_budget(budget.id, amount)
            updated.append(budget.id)
        except PERSISTENCE_ERRORS as exc:
            logger.error("Failed to snapshot %s budget %s: %s", goal.priority, budget.id, exc)
    return updated
