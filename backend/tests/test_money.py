from decimal import Decimal
import pytest

from siteledger.errors import InvalidInputError
from siteledger.services.money import (
    compute_total, require_scale, round2, tax_component, to_decimal, to_minor_units, from_minor_units, format_amount,
)


def test_gst_purchase_total():
    assert compute_total(10, Decimal('100'), Decimal('18')) == Decimal('1180.00')


def test_compute_total_is_deterministic():
    first = compute_total(3, '33.333', '12.5')
    assert all(compute_total(3, '33.333', '12.5') == first for _ in range(5))
    # rounding an already rounded total changes nothing
    assert round2(first) == first


def test_zero_rate_defaults():
    assert compute_total(4, '2.50') == Decimal('10.00')


def test_rounds_half_even_on_final_total_only():
    # 1 x 0.125 -> 0.12 (half-even), not 0.13
    assert compute_total(1, '0.125', 0) == Decimal('0.12')
    assert compute_total(1, '0.135', 0) == Decimal('0.14')
    # subtotal 0.05 with 10% tax = 0.055 -> 0.06 once, no intermediate rounding of the tax part
    assert compute_total(1, '0.05', 10) == Decimal('0.06')


def test_accepts_string_quantity_of_integral_value():
    assert compute_total('2', '5', '0') == Decimal('10.00')


@pytest.mark.parametrize('quantity', [0, -1, 1.5, '2.5', True, None, 'abc'])
def test_rejects_bad_quantity(quantity):
    with pytest.raises(InvalidInputError):
        compute_total(quantity, '10', '0')


@pytest.mark.parametrize('price', ['-0.01', 'NaN', 'Infinity', 'ten', None])
def test_rejects_bad_unit_price(price):
    with pytest.raises(InvalidInputError):
        compute_total(1, price, '0')


@pytest.mark.parametrize('rate', ['-1', '100.01', 'abc'])
def test_rejects_rate_out_of_range(rate):
    with pytest.raises(InvalidInputError):
        compute_total(1, '10', rate)


def test_rate_bounds_are_inclusive():
    assert compute_total(1, '10', '0') == Decimal('10.00')
    assert compute_total(1, '10', '100') == Decimal('20.00')


def test_tax_component_of_inclusive_total():
    assert tax_component('1180.00', '18') == Decimal('180.00')


def test_minor_units_conversion():
    assert to_minor_units(Decimal('1180.00')) == 118000
    assert from_minor_units(118000) == Decimal('1180.00')
    assert format_amount(5) == '0.05'
    with pytest.raises(InvalidInputError):
        to_minor_units(Decimal('1.005'))


def test_to_decimal_keeps_float_text():
    assert to_decimal(0.1) == Decimal('0.1')
    with pytest.raises(InvalidInputError):
        to_decimal(False)


def test_require_scale():
    assert require_scale(Decimal('18.10'), 2, 'rate') == Decimal('18.10')
    assert require_scale(Decimal('18'), 2, 'rate') == Decimal('18')
    with pytest.raises(InvalidInputError):
        require_scale(Decimal('18.125'), 2, 'rate')
