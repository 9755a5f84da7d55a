# Overview: Integer piaster arithmetic shared by billing, payments and reporting.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# 100 piasters = 1 major unit
PIASTERS_PER_UNIT = 100

# Upper bound for any single amount; keeps SQLite integers and UI inputs sane
MAX_AMOUNT_PIASTERS = 999_999_999


class MoneyError(ValueError):
    """Raised when an amount cannot be interpreted as money."""


def to_minor_units(major_amount) -> int:
    """
    Convert a major-unit amount ("12.5", 12.5, Decimal("12.50")) to piasters.

    Rounding is half-up at the piaster, so 0.005 becomes 1 and 0.004 becomes 0.
    Floats go through str() first so the value the user typed is what gets rounded,
    not its binary approximation.
    """
    if isinstance(major_amount, bool):
        raise MoneyError("amount must be numeric")
    if isinstance(major_amount, float):
        major_amount = str(major_amount)
    try:
        value = Decimal(major_amount) if not isinstance(major_amount, Decimal) else major_amount
    except (InvalidOperation, TypeError, ValueError):
        raise MoneyError(f"invalid amount: {major_amount!r}")
    if not value.is_finite():
        raise MoneyError(f"invalid amount: {major_amount!r}")

    minor = (value * PIASTERS_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def format_minor_units(piasters: int) -> str:
    """Render piasters as a major-unit string with two decimals ("-12.05")."""
    sign = "-" if piasters < 0 else ""
    whole, frac = divmod(abs(int(piasters)), PIASTERS_PER_UNIT)
    return f"{sign}{whole}.{frac:02d}"


def percent_of(amount: int, rate: int) -> int:
    """floor(amount * rate / 100) for non-negative integer inputs."""
    if amount <= 0 or rate <= 0:
        return 0
    return (amount * rate) // 100


def prorate(minutes: int, rate_per_hour: int) -> int:
    """Charge for `minutes` at an hourly rate, fractional piasters dropped."""
    if minutes <= 0 or rate_per_hour <= 0:
        return 0
    return (minutes * rate_per_hour) // 60
