"""
Fixed-point money helpers: every persisted amount has exactly 2 fraction digits.
Round only at the calculation boundary.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert without rounding. Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary amount")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary amount: {value!r}") from e
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def quantize(value: Number) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(QUANTUM, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, rate: Number) -> Decimal:
    """percent_of(500, Decimal("0.10")) == Decimal("50.00")"""
    return quantize(to_decimal(amount) * to_decimal(rate))


def to_json_number(value: Number) -> float:
    """JSON columns cannot hold Decimal; store the rounded float."""
    return float(quantize(value))
