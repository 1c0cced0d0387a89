"""
Amount Normalisation Module

Coerces incoming amounts to Decimal with a fixed two-place precision and
does balance arithmetic exactly. NEVER uses float for monetary values.
"""

from decimal import (
    Context, Decimal, DecimalException, Inexact, InvalidOperation, Overflow,
    ROUND_HALF_UP, Rounded
)
from typing import Union

from .errors import InvalidAmount

PRECISION = 2
QUANTUM = Decimal('0.1') ** PRECISION
ZERO = Decimal('0.00')

# Significant digits any amount or balance may carry
MAX_DIGITS = 64

# Quantizing may round the last cent; it may not drop integer digits
QUANTIZE_CONTEXT = Context(prec=MAX_DIGITS, rounding=ROUND_HALF_UP, traps=[InvalidOperation, Overflow])

# Sums of quantized amounts must be exact
EXACT_CONTEXT = Context(
    prec=MAX_DIGITS, rounding=ROUND_HALF_UP,
    traps=[InvalidOperation, Overflow, Inexact, Rounded]
)

AmountLike = Union[Decimal, int, str, float]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a Decimal rounded to account precision

    Floats go through str() so that 0.1 becomes Decimal('0.10') rather
    than its binary expansion.

    Raises:
        InvalidAmount: If the value is not a finite number or has more
            than MAX_DIGITS significant digits at account precision
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Not a monetary amount: {value!r}")

    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"Not a monetary amount: {value!r}")

    if not value.is_finite():
        raise InvalidAmount(f"Not a monetary amount: {value!r}")

    try:
        return value.quantize(QUANTUM, context=QUANTIZE_CONTEXT)
    except DecimalException:
        raise InvalidAmount(f"Amount exceeds {MAX_DIGITS} significant digits: {value}")


def to_positive_amount(value: AmountLike) -> Decimal:
    """Convert a transaction amount, rejecting zero and negatives"""
    amount = to_amount(value)
    if amount <= ZERO:
        raise InvalidAmount(f"Amount must be > 0, got {amount}")
    return amount


def add_amounts(left: Decimal, right: Decimal) -> Decimal:
    """
    Exact sum of two amounts

    Raises:
        InvalidAmount: The sum needs more than MAX_DIGITS digits
    """
    try:
        return EXACT_CONTEXT.add(left, right)
    except DecimalException:
        raise InvalidAmount(f"Result exceeds {MAX_DIGITS} significant digits: {left} + {right}")


def subtract_amounts(left: Decimal, right: Decimal) -> Decimal:
    try:
        return EXACT_CONTEXT.subtract(left, right)
    except DecimalException:
        raise InvalidAmount(f"Result exceeds {MAX_DIGITS} significant digits: {left} - {right}")


def format_amount(amount: Decimal) -> str:
    """Format for display"""
    return f"{amount:,.{PRECISION}f}"
