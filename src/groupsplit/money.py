"""Fixed-point helpers for money and ratio arithmetic.

Every monetary value in GroupSplit is a ``Decimal`` quantised with
``ROUND_HALF_UP``: two places for currency, ten places for intermediate
ratios (percentage normalisation).
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
RATIO_QUANTUM = Decimal("0.0000000001")
ONE = Decimal("1")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_decimal(value: int | float | str | Decimal) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: int | float | str | Decimal) -> Decimal:
    """Round a value to cents using ROUND_HALF_UP."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_ratio(value: int | float | str | Decimal) -> Decimal:
    """Round a value to ten decimal places for intermediate ratio math."""
    return to_decimal(value).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """
    Convert a Decimal amount to integer cents.

    Args:
        amount: Currency amount as Decimal

    Returns:
        Amount in cents (integer)
    """
    return int((amount * 100).quantize(ONE, rounding=ROUND_HALF_UP))


def has_money_scale(amount: Decimal) -> bool:
    """Return True if the amount needs at most two decimal places.

    Trailing zeros don't count, so ``Decimal("40.000")`` qualifies.
    """
    exponent = amount.normalize().as_tuple().exponent
    return isinstance(exponent, int) and exponent >= -2


def sum_money(amounts) -> Decimal:
    """Sum Decimal amounts starting from an exact zero."""
    return sum(amounts, ZERO)
