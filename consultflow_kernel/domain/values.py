"""
Values -- monetary arithmetic helpers.

All amounts are ``Decimal``.  Rounding is to two decimal places with
ROUND_HALF_UP, applied once at the boundary where a figure is reported or
converted, never inside running sums.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
CENT = Decimal("0.01")
TENTH = Decimal("0.1")
HUNDRED = Decimal("100")

# Debit/credit totals closer than this are treated as balanced.
BALANCE_TOLERANCE = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.  None and blank strings become zero.

    Raises:
        ValueError: If the value cannot be parsed as a number.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a monetary amount: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    text = str(value).strip().replace(",", "")
    if not text:
        return ZERO
    try:
        result = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a numeric amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(amount: Decimal) -> Decimal:
    """Round to a whole unit, half away from zero."""
    return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def is_balanced(debit: Decimal, credit: Decimal) -> bool:
    return abs(debit - credit) < BALANCE_TOLERANCE


def pct_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    Percentage change from ``previous`` to ``current`` rounded to 1 decimal.

    Zero when ``previous`` is zero, relative to ``|previous|`` otherwise so a
    move from -100 to -50 reads as +50%.
    """
    if previous == ZERO:
        return Decimal("0.0")
    change = (current - previous) / abs(previous) * HUNDRED
    return change.quantize(TENTH, rounding=ROUND_HALF_UP)
