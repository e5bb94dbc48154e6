"""
Core utility functions for the loan back office.

Money and date helpers shared by the ledger calculations and services.
All financial calculations use Python's Decimal for precision.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext

from dateutil.relativedelta import relativedelta

# Set high precision for intermediate financial calculations
getcontext().prec = 28

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """
    Coerce an int, float, str or Decimal to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal('0.1') rather than
    its binary expansion.

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc


def quantize_money(amount) -> Decimal:
    """Round an amount to 2 decimal places (ROUND_HALF_UP)."""
    return to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole calendar months.

    Month-end dates clamp to the end of the target month:
        add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    """
    return start + relativedelta(months=months)
