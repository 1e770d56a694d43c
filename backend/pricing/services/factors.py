"""
Term and environment factor resolution.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Mapping

from ..dataclasses import DEFAULT_CATEGORY, PricingContext
from .utils import ONE, d, round4

logger = logging.getLogger(__name__)

CAS_CATEGORY = "cas"
CAS_LONG_TERM_MONTHS = 60
CAS_LONG_TERM_CAP = Decimal("0.52")
CAS_MIN_FACTOR_SHARE = Decimal("0.25")
DEFAULT_MIN_FACTOR_SHARE = Decimal("0.5")


def interpolate_term_factor(schedule: Mapping[int, Decimal], target_term: int, category: str) -> Decimal:
    """Discount multiplier for a contract length.

    Exact terms return the stored factor verbatim. Shorter than the shortest
    stored term uses that term's factor. Between stored terms the factor is
    interpolated linearly; past the longest term it is extrapolated from the
    two longest points and then clamped per category.
    """
    if target_term in schedule:
        return d(schedule[target_term])

    terms = sorted(schedule)
    if not terms:
        return ONE
    if len(terms) == 1:
        return d(schedule[terms[0]])

    if target_term <= terms[0]:
        return d(schedule[terms[0]])

    if target_term >= terms[-1]:
        last_term, prev_term = terms[-1], terms[-2]
        last_factor, prev_factor = d(schedule[last_term]), d(schedule[prev_term])

        slope = (last_factor - prev_factor) / Decimal(last_term - prev_term)
        factor = last_factor + slope * Decimal(target_term - last_term)

        if category == CAS_CATEGORY:
            if target_term >= CAS_LONG_TERM_MONTHS:
                factor = min(CAS_LONG_TERM_CAP, factor)
            else:
                factor = max(last_factor * CAS_MIN_FACTOR_SHARE, factor)
        else:
            factor = max(last_factor * DEFAULT_MIN_FACTOR_SHARE, factor)

        return round4(factor)

    lower, upper = terms[0], terms[-1]
    for left, right in zip(terms, terms[1:]):
        if left < target_term < right:
            lower, upper = left, right
            break

    lower_factor, upper_factor = d(schedule[lower]), d(schedule[upper])
    ratio = Decimal(target_term - lower) / Decimal(upper - lower)
    return round4(lower_factor + ratio * (upper_factor - lower_factor))


def get_term_factor(ctx: PricingContext, category: str, term_months: int) -> Decimal:
    """Term factor for a category, falling back to the default schedule, then to 1.

    A category that is present with an empty schedule resolves to 1; it does
    not fall back to the default schedule.
    """
    if category in ctx.term_factors:
        schedule: Dict[int, Decimal] = ctx.term_factors[category]
    else:
        schedule = ctx.term_factors.get(DEFAULT_CATEGORY)
    if not schedule:
        logger.debug(f"No term schedule for category '{category}', using factor 1")
        return ONE
    return interpolate_term_factor(schedule, term_months, category)


def get_environment_factor(ctx: PricingContext, entry_id: str, environment: str) -> Decimal:
    overrides = ctx.environment_overrides.get(entry_id)
    if overrides and environment in overrides:
        return d(overrides[environment])
    return d(ctx.default_environment_factors.get(environment, ONE))
