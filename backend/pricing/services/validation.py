from __future__ import annotations

import logging
from typing import List

from ..dataclasses import CURVE_MODES, PricingContext
from .exceptions import ContextValidationError
from .utils import d

logger = logging.getLogger(__name__)


def _validate_curves(ctx: PricingContext) -> List[str]:
    errors = []
    for entry_id, curve in ctx.curves.items():
        if curve.mode not in CURVE_MODES:
            errors.append(f"Curve {entry_id}: unknown mode '{curve.mode}'")
        if d(curve.base_quantity) <= 0:
            errors.append(f"Curve {entry_id}: base quantity must be positive")
        if curve.max_quantity and d(curve.base_quantity) > d(curve.max_quantity):
            errors.append(
                f"Curve {entry_id}: base quantity {curve.base_quantity} exceeds cap {curve.max_quantity}"
            )
        if d(curve.floor_price) > d(curve.base_unit_price):
            errors.append(
                f"Curve {entry_id}: floor price {curve.floor_price} above base unit price {curve.base_unit_price}"
            )
        if not (0 <= d(curve.per_double_discount) < 1):
            errors.append(f"Curve {entry_id}: per-doubling discount must be in [0, 1)")
        if curve.mode == "stepped" and not curve.breakpoints and int(curve.bucket_count or 0) < 2:
            errors.append(f"Curve {entry_id}: stepped mode needs at least 2 buckets")
    return errors


def _validate_ladders(ctx: PricingContext) -> List[str]:
    errors = []
    for entry_id, tiers in ctx.ladders.items():
        if not tiers:
            errors.append(f"Ladder {entry_id}: no tiers")
            continue
        for i, tier in enumerate(tiers):
            is_last = i == len(tiers) - 1
            if tier.max_quantity is None:
                if not is_last:
                    errors.append(f"Ladder {entry_id}: only the last tier may be unbounded (tier {i + 1})")
            elif d(tier.max_quantity) < d(tier.min_quantity):
                errors.append(f"Ladder {entry_id}: tier {i + 1} max below min")
            if i == 0:
                continue
            prev = tiers[i - 1]
            if prev.max_quantity is None:
                continue
            if d(tier.min_quantity) <= d(prev.max_quantity):
                errors.append(f"Ladder {entry_id}: tier {i + 1} overlaps tier {i}")
            elif d(tier.min_quantity) - d(prev.max_quantity) > 1:
                errors.append(f"Ladder {entry_id}: gap between tier {i} and tier {i + 1}")
    return errors


def _validate_references(ctx: PricingContext) -> List[str]:
    errors = []
    known = set(ctx.entries)
    for label, table in (
        ("Curve", ctx.curves),
        ("Ladder", ctx.ladders),
        ("Fixed charge", ctx.fixed_charges),
        ("Environment override", ctx.environment_overrides),
    ):
        for entry_id in table:
            if entry_id not in known:
                errors.append(f"{label} references unknown entry {entry_id}")
    for category, schedule in ctx.term_factors.items():
        if not schedule:
            errors.append(f"Term schedule '{category}' has no entries")
    return errors


def validate_pricing_context(ctx: PricingContext) -> List[str]:
    """Check the reference data invariants. Returns a list of problems (empty if valid)."""
    errors = _validate_curves(ctx) + _validate_ladders(ctx) + _validate_references(ctx)
    if errors:
        logger.warning(f"Pricing context validation found {len(errors)} problems")
    return errors


def ensure_valid_context(ctx: PricingContext) -> PricingContext:
    errors = validate_pricing_context(ctx)
    if errors:
        raise ContextValidationError(errors)
    return ctx
