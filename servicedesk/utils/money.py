"""Decimal helpers for currency amounts."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float, Decimal, str]

ZERO = Decimal('0')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through str() so 0.1 becomes Decimal('0.1'), not
    Decimal('0.1000000000000000055511151231257827...').

    Raises:
        ValueError: if the value is not a finite number.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f'Monto inválido: {value!r}')
    if not result.is_finite():
        raise ValueError(f'Monto inválido: {value!r}')
    return result


def round_money(value: Number) -> Decimal:
    """Round to cents, half away from zero (1.005 -> 1.01, -1.005 -> -1.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, percent: Number) -> Decimal:
    """amount * percent / 100, unrounded."""
    return to_decimal(amount) * to_decimal(percent) / HUNDRED


def sum_amounts(values: Iterable[Number]) -> Decimal:
    """Sum at full precision."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total
