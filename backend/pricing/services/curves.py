"""
Discount curve evaluation.

Unit prices come from a parametric discount curve (smooth decay per doubling
of quantity, or a stepped sampling of the same decay) or, when no usable
curve exists, from an explicit tiered ladder.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import List, Optional

from ..dataclasses import DiscountCurve, LadderTier, PriceTier, PricingContext, UNBOUNDED_QTY
from .exceptions import NoMatchingTier, PricingError, PricingUndefined
from .utils import ONE, ZERO, d, log2, round4

logger = logging.getLogger(__name__)

DEFAULT_BUCKET_COUNT = 10


def _floor_int(value: Decimal) -> Decimal:
    return d(value).to_integral_value(rounding=ROUND_FLOOR)


def _round_int(value: Decimal) -> Decimal:
    return d(value).to_integral_value(rounding=ROUND_HALF_UP)


def _decayed_price(curve: DiscountCurve, qty: Decimal) -> Decimal:
    """base_unit_price * (1 - per_double_discount) ** doublings, never below the base tier."""
    doublings = log2(qty / curve.base_quantity)
    if doublings <= ZERO:
        return d(curve.base_unit_price)
    factor_per_double = ONE - d(curve.per_double_discount)
    return d(curve.base_unit_price) * (factor_per_double ** doublings)


def geometric_bounds(base_qty, max_qty, steps) -> List[Decimal]:
    """Bucket boundaries spaced geometrically from base_qty up to max_qty.

    The first bound is forced to the (integer) base quantity and the last to the
    (integer) cap so floating error in the ratio never moves the ends.
    """
    b = max(ONE, _floor_int(base_qty))
    cap = max(b, _floor_int(max_qty))
    s = max(2, int(steps))

    if b == cap:
        return [b, cap]

    ratio = (cap / b) ** (ONE / Decimal(s - 1))
    bounds = [b * (ratio ** i) for i in range(s)]
    bounds[0] = b
    bounds[-1] = cap
    return bounds


def bounds_from_curve(curve: DiscountCurve) -> List[Decimal]:
    cap = d(curve.cap)

    if curve.mode == "stepped" and curve.breakpoints:
        points = [d(p) for p in curve.breakpoints]
        base = d(curve.base_quantity)
        if base not in points:
            points.append(base)
        points = sorted({p for p in points if ONE <= p <= cap})

        if not points:
            points = [base]
        if points[-1] < cap:
            points.append(cap)
        if len(points) < 2:
            points = [base, cap]
        return points

    steps = int(curve.bucket_count or DEFAULT_BUCKET_COUNT)
    return geometric_bounds(curve.base_quantity, cap, max(2, steps))


def _bucket_index(bounds: List[Decimal], qty: Decimal) -> int:
    if qty >= bounds[-1]:
        return len(bounds) - 2
    for i in range(len(bounds) - 1):
        if bounds[i] <= qty < bounds[i + 1]:
            return i
    return 0


def price_from_curve(curve: DiscountCurve, quantity) -> Decimal:
    """Unit price for `quantity` under the curve, rounded to 4 places."""
    qty = max(d(quantity), d(curve.base_quantity))
    floor = d(curve.floor_price)

    if curve.mode == "smooth":
        return round4(max(floor, _decayed_price(curve, qty)))

    # Stepped: price at the lower boundary of the bucket holding qty
    bounds = bounds_from_curve(curve)
    idx = _bucket_index(bounds, qty)
    return round4(max(floor, _decayed_price(curve, bounds[idx])))


def price_from_ladder(tiers: List[LadderTier], quantity) -> Decimal:
    if not tiers:
        raise PricingUndefined(reason="No ladder defined")

    qty = d(quantity)
    for tier in tiers:
        upper = d(tier.max_quantity) if tier.max_quantity is not None else UNBOUNDED_QTY
        if d(tier.min_quantity) <= qty <= upper:
            return round4(tier.unit_price)

    # Only an open-ended last tier absorbs quantities beyond every range;
    # a bounded last tier is an error, not a clamp.
    last = tiers[-1]
    if last.max_quantity is None and qty >= d(last.min_quantity):
        return round4(last.unit_price)

    raise NoMatchingTier(quantity)


def find_unit_price(ctx: PricingContext, entry_id: str, quantity) -> Decimal:
    """Unit price for an entry at a quantity. Raises PricingError when undefined."""
    curve = ctx.curves.get(entry_id)
    tiers = ctx.ladders.get(entry_id)

    if curve is not None and not curve.is_manual:
        return price_from_curve(curve, quantity)

    if tiers:
        return price_from_ladder(tiers, quantity)

    # A manual curve with no ladder is still better than nothing
    if curve is not None:
        return price_from_curve(curve, quantity)

    raise PricingUndefined(entry_id)


def list_unit_price(ctx: PricingContext, entry_id: str) -> Optional[Decimal]:
    """Price at quantity 1, or None when it cannot be determined.

    List price is informational only, so failures here never abort a calculation.
    """
    try:
        return find_unit_price(ctx, entry_id, ONE)
    except PricingError as e:
        logger.warning(f"List price unavailable for {entry_id}: {e}")
        return None


def tiers_for_entry(ctx: PricingContext, entry_id: str) -> List[PriceTier]:
    """Display tiers implied by the entry's curve, or its ladder verbatim."""
    curve = ctx.curves.get(entry_id)
    ladder = ctx.ladders.get(entry_id)
    tiers: List[PriceTier] = []

    if curve is not None and not curve.is_manual:
        bounds = bounds_from_curve(curve)
        for lower, upper in zip(bounds, bounds[1:]):
            tiers.append(
                PriceTier(
                    min_quantity=_round_int(lower),
                    max_quantity=_round_int(upper) - 1,
                    price=price_from_curve(curve, lower),
                )
            )
        tiers.append(
            PriceTier(
                min_quantity=_round_int(bounds[-1]),
                max_quantity=None,
                price=price_from_curve(curve, bounds[-1]),
            )
        )
    elif ladder:
        for tier in ladder:
            tiers.append(PriceTier(tier.min_quantity, tier.max_quantity, d(tier.unit_price)))

    return tiers
