"""Minor-unit money arithmetic.

Amounts are held as ``int`` minor units (paise for INR). Derived amounts
are computed with ``Decimal`` and rounded half-up to a whole minor unit.
"""

from decimal import ROUND_HALF_UP, Decimal

MINOR_UNITS_PER_MAJOR = 100


def round_half_up(value) -> int:
    """Round a Decimal-compatible value to the nearest whole minor unit."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(amount) -> int:
    """Convert a major-unit amount (e.g. rupees) to minor units."""
    return round_half_up(Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR)


def to_major_units(amount: int) -> Decimal:
    return (Decimal(amount) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def percentage_of(amount: int, percent) -> int:
    """``percent`` % of ``amount``, rounded half-up."""
    return round_half_up(Decimal(amount) * Decimal(str(percent)) / Decimal(100))


def savings_percentage(discount: int, amount: int) -> Decimal:
    """Share of ``amount`` saved by ``discount``, to two decimal places."""
    if amount <= 0:
        return Decimal("0.00")
    return (Decimal(discount) * 100 / Decimal(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
