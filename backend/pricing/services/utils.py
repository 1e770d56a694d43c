from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
FOURPLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
TWO = Decimal("2")


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely."""
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def round2(amount) -> Decimal:
    """Currency rounding (half up to 0.01)."""
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def round4(amount) -> Decimal:
    """Rate/factor rounding (half up to 0.0001)."""
    return d(amount).quantize(FOURPLACES, rounding=ROUND_HALF_UP)


def log2(value: Decimal) -> Decimal:
    return d(value).ln() / TWO.ln()


def pct_off(price: Decimal, reference: Decimal) -> Decimal:
    """Percentage by which `price` sits below `reference`, e.g. 8.1 vs 10 -> 19.00."""
    return round2((ONE - d(price) / d(reference)) * HUNDRED)
