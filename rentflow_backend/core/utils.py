"""Common utilities for the RentFlow backend."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a value to a Decimal rounded half-up to cents.

    Floats go through str() so 0.1 stays 0.10 rather than its binary expansion.
    """
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid monetary amount: {value!r}") from e


def billing_month(moment: datetime | None = None) -> str:
    """Billing month key in YYYY-MM form."""
    return (moment or utc_now()).strftime("%Y-%m")


def format_amount(amount: Decimal, currency: str = "KES") -> str:
    """Human readable amount, e.g. 'KES 20,000'."""
    amount = to_money(amount)
    if amount == amount.to_integral_value():
        return f"{currency} {amount:,.0f}"
    return f"{currency} {amount:,.2f}"
