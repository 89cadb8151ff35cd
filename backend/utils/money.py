"""
Fixed-point currency helpers.

Amounts are stored as integer minor units (cents) and exposed as Decimal
with two places. Floats never reach the ledger.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")

# Largest difference between a client-supplied total and the recomputed sum
# that is still attributed to rounding.
ROUNDING_TOLERANCE = Decimal("0.005")


def to_decimal(value) -> Decimal:
    """Coerce str/int/float/Decimal to a two-place Decimal."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid money amount: {value!r}") from e


def to_cents(value) -> int:
    return int(to_decimal(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def within_tolerance(a: Decimal, b: Decimal) -> bool:
    return abs(Decimal(a) - Decimal(b)) <= ROUNDING_TOLERANCE
