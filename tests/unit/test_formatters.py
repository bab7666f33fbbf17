"""
Unit tests for money helpers and es-MX formatters.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from servicedesk.utils.formatters import (
    money_mx, date_mx, parse_date_input, parse_flag, format_folio, parse_folio
)
from servicedesk.utils.money import to_decimal, round_money, percent_of, sum_amounts


class TestMoney:

    def test_round_half_up(self):
        assert round_money('2.675') == Decimal('2.68')
        assert round_money('1.005') == Decimal('1.01')
        assert round_money('-1.005') == Decimal('-1.01')

    def test_to_decimal_from_float(self):
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal(None) == 0

    @pytest.mark.parametrize('value', ['abc', 'inf', 'NaN'])
    def test_to_decimal_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_percent_of_and_sum(self):
        assert percent_of(Decimal('18250'), Decimal('16')) == Decimal('2920')
        assert sum_amounts(['0.1', 0.2, Decimal('0.3')]) == Decimal('0.6')


class TestMoneyFormatting:

    def test_thousands_and_two_decimals(self):
        assert money_mx(18250) == '18,250.00'
        assert money_mx(Decimal('1234.5')) == '1,234.50'
        assert money_mx('21170') == '21,170.00'

    def test_blank_values(self):
        assert money_mx(None) == '-'
        assert money_mx('') == '-'
        assert money_mx('not money') == '-'


class TestDates:

    def test_date_mx(self):
        assert date_mx(date(2025, 1, 12)) == '12/01/2025'
        assert date_mx(datetime(2025, 3, 4, 10, 30)) == '04/03/2025'
        assert date_mx('2025-01-12') == '12/01/2025'
        assert date_mx(None) == '-'

    def test_parse_date_input_formats(self):
        assert parse_date_input('2025-01-12') == date(2025, 1, 12)
        assert parse_date_input('12/01/2025') == date(2025, 1, 12)
        assert parse_date_input('2025-01-12T08:15:00') == date(2025, 1, 12)
        assert parse_date_input('  ') is None
        assert parse_date_input(None) is None

    def test_parse_date_input_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date_input('mañana')


class TestFlags:

    @pytest.mark.parametrize('value', [True, 1, '1', 'true', 'on', 'Sí'])
    def test_truthy(self, value):
        assert parse_flag(value) is True

    @pytest.mark.parametrize('value', [False, None, 0, '0', 'false', '', 'off'])
    def test_falsy(self, value):
        assert parse_flag(value) is False


class TestFolios:

    def test_format_has_no_padding(self):
        assert format_folio('COT', 2025, 100) == 'COT-2025-100'
        assert format_folio('ORD', 2025, 1234) == 'ORD-2025-1234'

    def test_parse(self):
        assert parse_folio('COT-2025-101') == ('COT', 2025, 101)
        assert parse_folio(' ord-2024-99 ') == ('ORD', 2024, 99)

    @pytest.mark.parametrize('value', [None, '', '001', 'COT-25-100', 'COT-2025-', 'COT2025100'])
    def test_parse_rejects_other_shapes(self, value):
        assert parse_folio(value) is None
