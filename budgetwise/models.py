"""Record types consumed by the budget engine.

Records arrive from the persistence/API collaborator as loosely shaped
dictionaries (camelCase from the web API, snake_case from SQLite).  Each
dataclass exposes ``from_record`` which validates and defaults a single
dictionary, and :func:`load_records` which builds a list while skipping
(and logging) rows that fail validation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from .dates import parse_date

logger = logging.getLogger(__name__)

PRIORITIES = ('needs', 'wants', 'savings')
TRANSACTION_TYPES = ('income', 'expense')
BUDGET_STATUSES = ('planned', 'active', 'completed')

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value: Any) -> Decimal:
    """Quantise ``value`` to cents.

    Raises:
        ValueError: If ``value`` is not numeric.
    """
    if isinstance(value, Decimal):
        amount = value
    elif value is None or value == '':
        amount = Decimal(0)
    else:
        try:
            amount = Decimal(str(value).strip().replace(',', ''))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _optional_id(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes'}
    return bool(value)


def _choice(value: Any, allowed: Iterable[str], field: str, required: bool = True) -> Optional[str]:
    if value is None or value == '':
        if required:
            raise ValueError(f"Missing {field}")
        return None
    text = str(value).strip().lower()
    if text not in allowed:
        raise ValueError(f"Invalid {field}: {value!r}")
    return text


@dataclass
class Transaction:
    id: str
    title: str
    amount: Decimal
    type: str
    date: Optional[date]
    is_paid: bool = False
    paid_date: Optional[date] = None
    category_id: Optional[str] = None
    financial_priority: Optional[str] = None
    custom_budget_id: Optional[str] = None
    bucket_id: Optional[str] = None
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None

    @property
    def is_expense(self) -> bool:
        return self.type == 'expense'

    @property
    def is_income(self) -> bool:
        return self.type == 'income'

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Transaction':
        amount = to_money(_pick(record, 'amount', default=0))
        if amount < 0:
            raise ValueError(f"Transaction {record.get('id')!r} has a negative amount")
        is_paid = _as_bool(_pick(record, 'isPaid', 'is_paid', default=False))
        paid_date = parse_date(_pick(record, 'paidDate', 'paid_date'))
        if is_paid and paid_date is None:
            raise ValueError(f"Transaction {record.get('id')!r} is paid without a valid paid date")
        original = _pick(record, 'originalAmount', 'original_amount')
        return cls(
            id=str(_pick(record, 'id', default='')),
            title=str(_pick(record, 'title', 'description', default='')),
            amount=amount,
            type=_choice(_pick(record, 'type'), TRANSACTION_TYPES, 'transaction type'),
            date=parse_date(_pick(record, 'date', 'transaction_date')),
            is_paid=is_paid,
            paid_date=paid_date,
            category_id=_optional_id(_pick(record, 'category_id', 'categoryId')),
            financial_priority=_choice(
                _pick(record, 'financial_priority', 'financialPriority'), PRIORITIES, 'priority', required=False
            ),
            custom_budget_id=_optional_id(_pick(record, 'customBudgetId', 'custom_budget_id')),
            bucket_id=_optional_id(_pick(record, 'bucketId', 'bucket_id')),
            original_amount=to_money(original) if original is not None else None,
            original_currency=_pick(record, 'originalCurrency', 'original_currency'),
        )


@dataclass
class Category:
    id: str
    name: str
    priority: Optional[str] = None
    color: str = '#94A3B8'
    icon: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Category':
        return cls(
            id=str(_pick(record, 'id', default='')),
            name=str(_pick(record, 'name', default='')),
            priority=_choice(_pick(record, 'priority'), PRIORITIES, 'priority', required=False),
            color=str(_pick(record, 'color', default='#94A3B8')),
            icon=_pick(record, 'icon'),
        )


@dataclass
class SystemBudget:
    id: str
    name: str
    budget_amount: Decimal
    start_date: Optional[date]
    end_date: Optional[date]
    system_budget_type: str
    color: Optional[str] = None

    is_system_budget = True

    @property
    def allocated(self) -> Decimal:
        return self.budget_amount

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'SystemBudget':
        return cls(
            id=str(_pick(record, 'id', default='')),
            name=str(_pick(record, 'name', default='')),
            budget_amount=to_money(_pick(record, 'budgetAmount', 'budget_amount', default=0)),
            start_date=parse_date(_pick(record, 'startDate', 'start_date')),
            end_date=parse_date(_pick(record, 'endDate', 'end_date')),
            system_budget_type=_choice(
                _pick(record, 'systemBudgetType', 'system_budget_type'), PRIORITIES, 'system budget type'
            ),
            color=_pick(record, 'color'),
        )


@dataclass
class CustomBudget:
    id: str
    name: str
    allocated_amount: Decimal
    start_date: Optional[date]
    end_date: Optional[date]
    status: str = 'active'
    is_mini: bool = False
    original_allocated_amount: Optional[Decimal] = None
    color: Optional[str] = None

    is_system_budget = False

    @property
    def allocated(self) -> Decimal:
        return self.allocated_amount

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'CustomBudget':
        original = _pick(record, 'originalAllocatedAmount', 'original_allocated_amount')
        return cls(
            id=str(_pick(record, 'id', default='')),
            name=str(_pick(record, 'name', default='')),
            allocated_amount=to_money(_pick(record, 'allocatedAmount', 'allocated_amount', default=0)),
            start_date=parse_date(_pick(record, 'startDate', 'start_date')),
            end_date=parse_date(_pick(record, 'endDate', 'end_date')),
            status=_choice(_pick(record, 'status', default='active'), BUDGET_STATUSES, 'status'),
            is_mini=_as_bool(_pick(record, 'isMini', 'is_mini', default=False)),
            original_allocated_amount=to_money(original) if original is not None else None,
            color=_pick(record, 'color'),
        )


@dataclass
class CustomBudgetAllocation:
    id: str
    custom_budget_id: str
    category_id: str
    allocated_amount: Decimal

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'CustomBudgetAllocation':
        return cls(
            id=str(_pick(record, 'id', default='')),
            custom_budget_id=str(_pick(record, 'customBudgetId', 'custom_budget_id', default='')),
            category_id=str(_pick(record, 'categoryId', 'category_id', default='')),
            allocated_amount=to_money(_pick(record, 'allocatedAmount', 'allocated_amount', default=0)),
        )


@dataclass
class BudgetGoal:
    priority: str
    target_percentage: float = 0.0
    is_absolute: bool = False
    target_amount: Decimal = ZERO

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'BudgetGoal':
        return cls(
            priority=_choice(_pick(record, 'priority'), PRIORITIES, 'priority'),
            target_percentage=float(_pick(record, 'target_percentage', 'targetPercentage', default=0.0)),
            is_absolute=_as_bool(_pick(record, 'is_absolute', 'isAbsolute', default=False)),
            target_amount=to_money(_pick(record, 'target_amount', 'targetAmount', default=0)),
        )


@dataclass(frozen=True)
class ExchangeRate:
    from_currency: str
    to_currency: str
    rate: Decimal

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'ExchangeRate':
        return cls(
            from_currency=str(_pick(record, 'fromCurrency', 'from_currency', default='')).upper(),
            to_currency=str(_pick(record, 'toCurrency', 'to_currency', default='')).upper(),
            rate=Decimal(str(_pick(record, 'rate', default=1))),
        )


RecordT = TypeVar('RecordT')


def load_records(cls: Type[RecordT], records: Iterable[Mapping[str, Any]]) -> List[RecordT]:
    """Build ``cls`` instances from raw records, skipping invalid rows."""
    loaded: List[RecordT] = []
    for record in records or []:
        if not isinstance(record, Mapping):
            logger.warning("Skipping non-mapping %s record: %r", cls.__name__, record)
            continue
        try:
            loaded.append(cls.from_record(record))  # type: ignore[attr-defined]
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping invalid %s record %r: %s", cls.__name__, record.get('id'), exc)
    return loaded


def budget_index(budgets: Iterable[Any]) -> Dict[str, Any]:
    """Map budget id to budget, ignoring entries without an id."""
    return {b.id: b for b in budgets or [] if getattr(b, 'id', None)}
