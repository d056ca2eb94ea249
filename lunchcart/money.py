"""Decimal helpers for cart prices and totals."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

Numeric = Union[str, int, float, Decimal, None]

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_decimal(value: Numeric) -> Decimal:
    """Decimal for a stored or submitted price; None, garbage and non-finite values become 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            # floats go through str so 0.1 stays 0.1
            number = Decimal(str(value).strip() if isinstance(value, (float, str)) else value)
        except (InvalidOperation, ValueError, TypeError):
            return ZERO
    # NaN and Infinity never reach cart arithmetic
    return number if number.is_finite() else ZERO


def round_money(value: Numeric) -> Decimal:
    """Round monetary value to cents."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_float(value: Numeric) -> float:
    """Float for JSON bodies; cart arithmetic stays in Decimal."""
    return float(to_decimal(value))


def multiply(value: Numeric, factor: Numeric) -> Decimal:
    """Line price: unit price times quantity."""
    return to_decimal(value) * to_decimal(factor)


def apply_discount(price: Numeric, discount_percent: Numeric) -> Decimal:
    """
    Unit price after a percentage discount.

    Only discounts in (0, 100] apply; anything else leaves the price as is.
    """
    price = to_decimal(price)
    discount = to_decimal(discount_percent)
    if 0 < discount <= 100:
        return price * (Decimal("1") - discount / HUNDRED)
    return price
