"""Effective needs/wants/savings priority of a transaction."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence

from .models import PRIORITIES, Category, Transaction, budget_index


def _is_custom_budget(budget) -> bool:
    return budget is not None and not getattr(budget, 'is_system_budget', False)


def resolve_priority(
    transaction: Transaction,
    categories: Optional[Sequence[Category]] = None,
    custom_budgets: Optional[Iterable] = None,
) -> Optional[str]:
    """Return ``'needs'``, ``'wants'``, ``'savings'`` or ``None``.

    First match wins:

    1. assigned to a custom (non-system) budget -> ``'wants'``
    2. explicit ``financial_priority`` on the transaction
    3. the priority of the transaction's category
    4. ``None`` (uncategorized)

    Unknown budget or category ids fall through to the next rule.
    """
    if transaction.custom_budget_id:
        budget = budget_index(custom_budgets).get(transaction.custom_budget_id)
        if _is_custom_budget(budget):
            return 'wants'

    if transaction.financial_priority in PRIORITIES:
        return transaction.financial_priority

    if transaction.category_id:
        category = next((c for c in categories or [] if c.id == transaction.category_id), None)
        if category is not None and category.priority in PRIORITIES:
            return category.priority

    return None


class PriorityResolver:
    """Bulk resolver with pre-built lookups for repeated calls."""

    def __init__(self, categories: Optional[Sequence[Category]] = None, custom_budgets: Optional[Iterable] = None):
        self._category_priority: Dict[str, Optional[str]] = {c.id: c.priority for c in categories or []}
        self._custom_ids = {b_id for b_id, b in budget_index(custom_budgets).items() if _is_custom_budget(b)}

    def __call__(self, transaction: Transaction) -> Optional[str]:
        if transaction.custom_budget_id and transaction.custom_budget_id in self._custom_ids:
            return 'wants'
        if transaction.financial_priority in PRIORITIES:
            return transaction.financial_priority
        if transaction.category_id:
            priority = self._category_priority.get(transaction.category_id)
            if priority in PRIORITIES:
                return priority
        return None

    def is_custom(self, transaction: Transaction) -> bool:
        return bool(transaction.custom_budget_id and transaction.custom_budget_id in self._custom_ids)
