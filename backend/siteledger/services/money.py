from __future__ import annotations
"""Money & tax arithmetic.

Pure functions over ``Decimal``; nothing here touches floats, the database or
shared state, so every helper is safe to call from any thread.

Rounding policy: the purchase total is rounded once, on the final value, to
two places with ROUND_HALF_EVEN. Subtotal and tax are never rounded on their
own, which keeps repeated computations from drifting.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Union

from siteledger.errors import InvalidInputError

CENT = Decimal('0.01')
HUNDRED = Decimal(100)
MAX_TAX_RATE = HUNDRED

Number = Union[int, str, Decimal]


def to_decimal(value: Any, field_name: str = 'amount') -> Decimal:
    """Parse ``value`` into a finite Decimal.

    Floats are converted through ``str`` so ``0.1`` stays ``Decimal('0.1')``.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f'{field_name} must be a number')
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInputError(f'{field_name} must be a number')
    if not result.is_finite():
        raise InvalidInputError(f'{field_name} must be a number')
    return result


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def require_scale(value: Decimal, places: int, field_name: str) -> Decimal:
    """Refuse values with more than ``places`` decimals (the stored column scale)."""
    try:
        exact = value.quantize(Decimal(1).scaleb(-places)) == value
    except InvalidOperation:
        exact = False
    if not exact:
        raise InvalidInputError(f'{field_name} must have at most {places} decimal places')
    return value


def compute_total(quantity: Any, unit_price: Any, tax_rate_percent: Any = 0) -> Decimal:
    """Return ``round2(quantity * unit_price * (1 + tax_rate_percent / 100))``.

    Raises InvalidInputError when quantity is not a positive integer, the unit
    price is negative or the rate lies outside [0, 100].
    """
    if isinstance(quantity, bool) or not isinstance(quantity, (int, Decimal, str)):
        raise InvalidInputError('quantity must be a positive integer')
    qty = to_decimal(quantity, 'quantity')
    if qty != qty.to_integral_value() or qty <= 0:
        raise InvalidInputError('quantity must be a positive integer')
    price = to_decimal(unit_price, 'unit_price')
    if price < 0:
        raise InvalidInputError('unit_price must be non-negative')
    rate = to_decimal(tax_rate_percent, 'tax_rate_percent')
    if rate < 0 or rate > MAX_TAX_RATE:
        raise InvalidInputError('tax_rate_percent must be between 0 and 100')
    subtotal = qty * price
    gross = subtotal + subtotal * rate / HUNDRED
    return round2(gross)


def tax_component(total: Any, tax_rate_percent: Any) -> Decimal:
    """Tax portion contained in a tax-inclusive ``total`` (rounded to cents)."""
    gross = to_decimal(total, 'total')
    rate = to_decimal(tax_rate_percent, 'tax_rate_percent')
    if rate < 0 or rate > MAX_TAX_RATE:
        raise InvalidInputError('tax_rate_percent must be between 0 and 100')
    return round2(gross * rate / (HUNDRED + rate))


def to_minor_units(amount: Decimal) -> int:
    """Decimal currency amount -> integer cents. Requires at most 2 places."""
    if round2(amount) != amount:
        raise InvalidInputError('amount must have at most 2 decimal places')
    return int((amount * HUNDRED).to_integral_value())


def from_minor_units(cents: int) -> Decimal:
    return (Decimal(cents) / HUNDRED).quantize(CENT)


def format_amount(cents: int) -> str:
    return str(from_minor_units(cents))

__all__ = [
    'CENT', 'to_decimal', 'round2', 'require_scale', 'compute_total', 'tax_component',
    'to_minor_units', 'from_minor_units', 'format_amount',
]
