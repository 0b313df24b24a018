from decimal import Decimal

import pytest

from budgetwise.config import EngineSettings
from budgetwise.formatting import convert_amount, format_currency
from budgetwise.models import ExchangeRate


def test_format_currency_defaults():
    assert format_currency(Decimal('1234.56')) == '$1,234.56'
    assert format_currency(-400) == '$-400.00'
    assert format_currency(None) == '$0.00'


def test_format_currency_european_style():
    settings = EngineSettings(
        currency_symbol=' €', currency_position='after', thousand_separator='.', decimal_separator=','
    )
    assert format_currency(Decimal('1234567.8'), settings) == '1.234.567,80 €'


def test_format_currency_hides_trailing_zeros():
    settings = EngineSettings(hide_trailing_zeros=True)
    assert format_currency(Decimal('1240.00'), settings) == '$1,240'
    assert format_currency(Decimal('12.50'), settings) == '$12.5'


def test_format_currency_zero_decimal_places():
    assert format_currency(Decimal('999.5'), EngineSettings(decimal_places=0)) == '$1,000'


def test_convert_amount_uses_direct_or_inverse_rate():
    rates = [ExchangeRate('EUR', 'USD', Decimal('1.10'))]
    assert convert_amount(100, 'EUR', 'USD', rates) == Decimal('110.00')
    assert convert_amount(110, 'usd', 'eur', rates) == Decimal('100.00')
    assert convert_amount(5, 'USD', 'USD', []) == Decimal('5.00')
    with pytest.raises(ValueError):
        convert_amount(5, 'USD', 'JPY', rates)
