"""
Money arithmetic on ``Decimal`` values.

All currency amounts are Decimals with two places. Each public operation
rounds once, on its final result, with ROUND_HALF_UP; intermediate products
are never rounded. The database stores integer minor units (cents) and
basis points, converted at the model boundary with ``to_cents``/``from_cents``
and ``to_bps``/``from_bps``.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation as DecimalInvalidOperation
from typing import Union

from .validation import InvalidMoneyValue, InvalidOperation

MoneyLike = Union[Decimal, int, str, float]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: MoneyLike) -> Decimal:
    """Coerce ``value`` to an unrounded Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """
    if value is None or isinstance(value, bool):
        raise InvalidMoneyValue(f"Not a money value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except DecimalInvalidOperation:
            raise InvalidMoneyValue(f"Not a money value: {value!r}")
    else:
        raise InvalidMoneyValue(f"Not a money value: {value!r}")

    if not result.is_finite():
        raise InvalidMoneyValue(f"Not a finite money value: {value!r}")
    return result


def quantize(value: MoneyLike) -> Decimal:
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add(*values: MoneyLike) -> Decimal:
    total = Decimal(0)
    for value in values:
        total += to_money(value)
    return quantize(total)


def subtract(a: MoneyLike, b: MoneyLike) -> Decimal:
    return quantize(to_money(a) - to_money(b))


def multiply(amount: MoneyLike, scalar: MoneyLike) -> Decimal:
    return quantize(to_money(amount) * to_money(scalar))


def percentage_of(amount: MoneyLike, rate: MoneyLike) -> Decimal:
    """``amount × rate / 100`` rounded once."""
    return quantize(to_money(amount) * to_money(rate) / HUNDRED)


def divide(amount: MoneyLike, count: int) -> Decimal:
    if count == 0:
        raise InvalidOperation("Cannot divide an amount by zero")
    return quantize(to_money(amount) / Decimal(count))


def to_cents(amount: MoneyLike) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return ZERO
    return (Decimal(int(cents)) / 100).quantize(CENT)


def fits_bps(rate: MoneyLike) -> bool:
    """True when the percentage is a whole number of basis points (at most 2 places)."""
    scaled = to_money(rate) * 100
    return scaled == scaled.to_integral_value()


def to_bps(rate: MoneyLike) -> int:
    """Percentage to basis points (7.5 -> 750)."""
    return int((to_money(rate) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_bps(bps: int | None) -> Decimal:
    if bps is None:
        return Decimal(0)
    return Decimal(int(bps)) / 100
