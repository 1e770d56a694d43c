"""
Time-phased quantity aggregation.

When packages with different contract terms share a SKU, the shared quantity
changes over time: every item counts during the first months, shorter terms
drop out as they expire. The timeline is cut into phases at every term end,
each phase is priced at its own aggregate quantity, and each package gets a
duration-weighted average of the phase prices it is active in.

Example for terms 12, 24 and 36:
    1-12   all items active
    13-24  24 and 36 month items
    25-36  36 month items only
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping

from ..dataclasses import (
    CatalogEntry,
    LineItem,
    Package,
    PhaseContribution,
    PhaseTrace,
    PricingContext,
    TimePhase,
    WeightedPrice,
)
from .curves import find_unit_price
from .exceptions import PricingError
from .utils import ZERO, d

logger = logging.getLogger(__name__)

PhaseMap = Dict[str, Dict[str, TimePhase]]            # entry -> phase key -> phase
WeightedPriceMap = Dict[str, Dict[str, WeightedPrice]]  # entry -> package -> weighted price


def phase_boundaries(packages: Iterable[Package]) -> List[int]:
    """Sorted month boundaries: 1 plus the month after every item's term ends."""
    points = {1}
    for pkg in packages:
        for item in pkg.items:
            points.add(item.effective_term(pkg.term_months) + 1)
    return sorted(points)


def calculate_time_phases(packages: List[Package], entries: Mapping[str, CatalogEntry]) -> PhaseMap:
    """Aggregate quantity per usage-metered entry for every phase it is active in."""
    boundaries = phase_boundaries(packages)
    spans = [(start, nxt - 1) for start, nxt in zip(boundaries, boundaries[1:])]
    result: PhaseMap = {}

    for pkg in packages:
        for item in pkg.items:
            entry = entries.get(item.entry_id)
            if entry is None or entry.is_fixed_charge:
                continue

            term = item.effective_term(pkg.term_months)
            qty = d(item.quantity)
            phases = result.setdefault(item.entry_id, {})

            for start, end in spans:
                # Active while the phase begins inside the item's term
                if start > term:
                    continue
                phase = phases.get(f"{start}-{end}")
                if phase is None:
                    phase = TimePhase(start=start, end=end)
                    phases[phase.key] = phase
                phase.total_quantity += qty
                phase.contributions.append(PhaseContribution(pkg.id, qty, term))

    return result


def calculate_time_weighted_prices(phase_map: PhaseMap, ctx: PricingContext) -> WeightedPriceMap:
    """Duration-weighted average unit price per (entry, package)."""
    weighted: WeightedPriceMap = {}

    for entry_id, phases in phase_map.items():
        per_package: Dict[str, WeightedPrice] = weighted.setdefault(entry_id, {})

        phase_prices = {}
        for key, phase in phases.items():
            try:
                phase_prices[key] = find_unit_price(ctx, entry_id, phase.total_quantity)
            except PricingError as e:
                logger.warning(f"Skipping phase {key} for {entry_id}: {e}")

        for key, phase in phases.items():
            for contrib in phase.contributions:
                data = per_package.get(contrib.package_id)
                if data is None:
                    data = WeightedPrice(package_id=contrib.package_id)
                    per_package[contrib.package_id] = data

                months = min(phase.end, contrib.term_months) - phase.start + 1
                if months <= 0 or key not in phase_prices:
                    continue

                price = phase_prices[key]
                data.weighted_sum += price * months
                data.total_weight += months
                data.phases.append(
                    PhaseTrace(
                        phase=key,
                        months=months,
                        unit_price=price,
                        total_quantity=phase.total_quantity,
                    )
                )

        logger.debug(f"Computed weighted prices for {entry_id} across {len(per_package)} package(s)")

    return weighted


def aggregate_quantities(items: Iterable[LineItem], entries: Mapping[str, CatalogEntry]) -> Dict[str, Decimal]:
    """Total quantity per usage-metered entry, ignoring terms."""
    totals: Dict[str, Decimal] = {}
    for item in items:
        entry = entries.get(item.entry_id)
        if entry is None or entry.is_fixed_charge:
            continue
        totals[item.entry_id] = totals.get(item.entry_id, ZERO) + d(item.quantity)
    return totals
