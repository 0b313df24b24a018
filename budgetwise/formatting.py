"""Formatting utilities for currency display and conversion."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Union

from .config import EngineSettings
from .models import ExchangeRate, to_money


def format_currency(amount: Union[Decimal, float, int, None], settings: Optional[EngineSettings] = None) -> str:
    """Format a currency amount using the user's display settings.

    Args:
        amount: The amount to format; ``None`` renders as zero.
        settings: Symbol, position, separators, decimal places and
            ``hide_trailing_zeros``. Defaults to :class:`EngineSettings`.

    Returns:
        Formatted currency string (e.g., "$1,234.56" or "-1.234,5 €")

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
    """
    settings = settings or EngineSettings()
    places = settings.decimal_places if settings.decimal_places is not None else 2
    try:
        value = Decimal(str(amount)) if amount is not None else Decimal(0)
    except ArithmeticError:
        value = Decimal(0)
    if not value.is_finite():
        value = Decimal(0)

    quantum = Decimal(1).scaleb(-places)
    fixed = f"{abs(value).quantize(quantum, rounding=ROUND_HALF_UP):f}"
    integer_part, _, decimal_part = fixed.partition('.')
    integer_part = f"{int(integer_part):,}".replace(',', settings.thousand_separator)

    if settings.hide_trailing_zeros:
        decimal_part = decimal_part.rstrip('0')
    formatted = f"{integer_part}{settings.decimal_separator}{decimal_part}" if decimal_part else integer_part

    if value < 0 and Decimal(fixed) != 0:
        formatted = f"-{formatted}"
    if settings.currency_position == 'before':
        return f"{settings.currency_symbol}{formatted}"
    return f"{formatted}{settings.currency_symbol}"


def find_rate(rates: Iterable[ExchangeRate], from_currency: str, to_currency: str) -> Optional[Decimal]:
    source = from_currency.upper()
    target = to_currency.upper()
    for rate in rates or []:
        if rate.from_currency == source and rate.to_currency == target:
            return rate.rate
        if rate.from_currency == target and rate.to_currency == source and rate.rate:
            return Decimal(1) / rate.rate
    return None


def convert_amount(amount: Any, from_currency: str, to_currency: str, rates: Iterable[ExchangeRate]) -> Decimal:
    """Convert ``amount`` with a stored static rate.

    Raises:
        ValueError: If no rate between the two currencies is known.
    """
    if from_currency.upper() == to_currency.upper():
        return to_money(amount)
    rate = find_rate(rates, from_currency, to_currency)
    if rate is None:
        raise ValueError(f"No exchange rate from {from_currency} to {to_currency}")
    return to_money(to_money(amount) * rate)
