"""Money helpers.

Amounts travel through the API and the database as ``Decimal`` in major
units (rupees) with two decimal places. The gateway speaks integer minor
units (paise), so conversion happens only at that boundary.
"""

from decimal import ROUND_HALF_UP, Decimal

_TWO_PLACES = Decimal("0.01")
_MINOR_PER_MAJOR = 100


def quantize(amount: Decimal) -> Decimal:
    """Round to two decimal places, half-up."""
    return amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """199.00 -> 19900. Half-up on the third decimal: 0.005 -> 1."""
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return int((amount * _MINOR_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount(amount: Decimal, currency: str) -> str:
    """Decimal('1999.5'), 'INR' -> 'INR 1,999.50'."""
    return f"{currency} {quantize(amount):,.2f}"
