from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from ..dataclasses import (
    CatalogEntry,
    LineItem,
    PackageTotals,
    PerpetualConfig,
    PerpetualPricing,
    PriceTier,
    PricingContext,
    PricingResult,
    Quote,
    QuoteCalculation,
)
from .curves import find_unit_price, list_unit_price, tiers_for_entry
from .exceptions import EntryNotFound
from .factors import get_environment_factor, get_term_factor
from .perpetual import calculate_perpetual_pricing, is_perpetual_eligible
from .phases import WeightedPriceMap, calculate_time_phases, calculate_time_weighted_prices
from .pricing_rules import cost_split_settings, perpetual_config_from_rules, term_settings
from .utils import HUNDRED, ONE, ZERO, d, pct_off, round2, round4

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


# --------------------- Building blocks ---------------------

def get_entry(ctx: PricingContext, entry_id: str) -> CatalogEntry:
    entry = ctx.entries.get(entry_id)
    if entry is None:
        raise EntryNotFound(entry_id)
    return entry


def fixed_charge_amount(ctx: PricingContext, entry: CatalogEntry, term_months: int) -> Decimal:
    """Monthly recurring charge for a fixed-charge entry at a contract term."""
    charge = ctx.fixed_charges.get(entry.id)
    if charge is None:
        return ZERO

    mrc = d(charge.base_mrc)
    if charge.apply_term_discount:
        mrc = round2(mrc * get_term_factor(ctx, entry.category, term_months))
    return mrc


def cost_split_factors(ratio, rules: Optional[dict] = None) -> Dict[str, Decimal]:
    """Multipliers rebalancing prices calibrated at the reference fixed/usage split.

    Both factors are exactly 1 at the reference ratio.
    """
    split = cost_split_settings(rules)
    ratio = d(ratio)
    return {
        "base": round4(ratio / split["reference_base_ratio"]),
        "usage": round4((ONE - ratio) / split["reference_usage_ratio"]),
    }


# --------------------- Item pricing ---------------------

def _price_fixed_charge(ctx, entry, term_months, result: PricingResult, rules) -> None:
    reference_term = term_settings(rules)["list_price_reference_months"]
    mrc = fixed_charge_amount(ctx, entry, term_months)
    list_mrc = fixed_charge_amount(ctx, entry, reference_term)

    result.base_charge = mrc
    result.monthly_total = mrc
    result.unit_price = mrc
    result.list_price = list_mrc

    if list_mrc > 0:
        result.term_discount_pct = pct_off(mrc, list_mrc)
        result.total_discount_pct = result.term_discount_pct


def _price_usage(ctx, entry, item: LineItem, term_months, weighted_prices, result: PricingResult) -> None:
    list_price = list_unit_price(ctx, entry.id)
    result.list_price = list_price if list_price is not None else ZERO

    weighted = None
    if weighted_prices:
        weighted = weighted_prices.get(entry.id, {}).get(item.package_id)

    if weighted is not None and weighted.final_price is not None:
        price_at_qty = weighted.final_price
        if weighted.phases:
            result.pricing_phases = list(weighted.phases)
            result.aggregated_qty = max(p.total_quantity for p in weighted.phases)
    else:
        price_at_qty = find_unit_price(ctx, entry.id, item.quantity)

    if result.list_price > 0:
        result.volume_discount_pct = pct_off(price_at_qty, result.list_price)

    term_factor = get_term_factor(ctx, entry.category, term_months)
    result.term_discount_pct = round2((ONE - term_factor) * HUNDRED)
    result.env_factor = get_environment_factor(ctx, entry.id, item.environment)

    result.unit_price = round4(price_at_qty * term_factor * result.env_factor)
    if result.list_price > 0:
        result.total_discount_pct = pct_off(result.unit_price, result.list_price)

    result.usage_total = round2(result.unit_price * d(item.quantity))
    result.monthly_total = result.usage_total


def _apply_cost_split(entry, item: LineItem, ratio, result: PricingResult, rules) -> None:
    if entry.category not in cost_split_settings(rules)["categories"]:
        return

    factors = cost_split_factors(ratio, rules)
    if entry.is_fixed_charge:
        factor = factors["base"]
        result.base_charge = round2(result.base_charge * factor)
        result.monthly_total = result.base_charge
        result.unit_price = result.base_charge
    else:
        factor = factors["usage"]
        result.unit_price = round4(result.unit_price * factor)
        result.list_price = round4(result.list_price * factor)
        result.usage_total = round2(result.unit_price * d(item.quantity))
        result.monthly_total = result.usage_total
    result.ratio_factor = factor


def price_item(
    ctx: PricingContext,
    item: LineItem,
    package_term: int,
    weighted_prices: Optional[WeightedPriceMap] = None,
    cost_split_ratio=None,
    rules: Optional[dict] = None,
    apply_cost_split: bool = True,
) -> PricingResult:
    """Price a single line item.

    Fixed-charge entries price their (term discounted) MRC; usage entries price
    from the time-weighted phase price when one exists for the item's package,
    otherwise from the curve/ladder at the item's own quantity.
    """
    entry = get_entry(ctx, item.entry_id)
    term_months = item.effective_term(package_term)
    if cost_split_ratio is None:
        cost_split_ratio = cost_split_settings(rules)["default_ratio"]

    result = PricingResult(item_id=item.id)
    if entry.is_fixed_charge:
        _price_fixed_charge(ctx, entry, term_months, result, rules)
    else:
        _price_usage(ctx, entry, item, term_months, weighted_prices, result)

    if apply_cost_split:
        _apply_cost_split(entry, item, cost_split_ratio, result, rules)
    result.annual_total = round2(result.monthly_total * MONTHS_PER_YEAR)

    logger.debug(
        f"Priced item {item.id} ({entry.code}): unit={result.unit_price} "
        f"monthly={result.monthly_total} term={term_months}"
    )
    return result


# --------------------- Quote level ---------------------

def summarize_packages(quote: Quote, results: Iterable[PricingResult]) -> List[PackageTotals]:
    """Package subtotals. `results` must be in package then item order, one per item."""
    remaining = iter(results)
    totals = []
    for pkg in quote.packages:
        pkg_results = [next(remaining) for _ in pkg.items]
        totals.append(
            PackageTotals(
                package_id=pkg.id,
                subtotal_monthly=round2(sum((r.monthly_total for r in pkg_results), ZERO)),
                subtotal_annual=round2(sum((r.annual_total for r in pkg_results), ZERO)),
            )
        )
    return totals


def calculate_quote(ctx: PricingContext, quote: Quote, rules: Optional[dict] = None) -> QuoteCalculation:
    """
    Price every item of a quote and roll results up into package and quote totals.

    Any PricingError aborts the whole calculation; no partial result is returned.
    """
    default_term = term_settings(rules)["default_package_months"]
    packages = list(quote.packages)

    weighted_prices = None
    if quote.use_aggregated_pricing:
        phase_map = calculate_time_phases(packages, ctx.entries)
        weighted_prices = calculate_time_weighted_prices(phase_map, ctx)

    results: List[PricingResult] = []
    for pkg in packages:
        package_term = pkg.term_months or default_term
        for item in pkg.items:
            results.append(
                price_item(ctx, item, package_term, weighted_prices, quote.cost_split_ratio, rules)
            )

    calc = QuoteCalculation(
        quote_id=quote.id,
        items=results,
        packages=summarize_packages(quote, results),
        total_monthly=round2(sum((r.monthly_total for r in results), ZERO)),
        total_annual=round2(sum((r.annual_total for r in results), ZERO)),
    )
    logger.info(
        f"Calculated quote {quote.id}: {len(results)} items in {len(packages)} packages, "
        f"aggregated={quote.use_aggregated_pricing}, monthly={calc.total_monthly}, annual={calc.total_annual}"
    )
    return calc


def preview_items(
    ctx: PricingContext,
    items: Iterable[LineItem],
    id_factory: Callable[[], object] = uuid.uuid4,
    rules: Optional[dict] = None,
) -> List[PricingResult]:
    """Price bare items independently, outside any package or quote."""
    default_term = term_settings(rules)["default_package_months"]
    results = []
    for item in items:
        if not item.id:
            item = replace(item, id=str(id_factory()))
        results.append(price_item(ctx, item, item.term_months or default_term, rules=rules, apply_cost_split=False))
    return results


def price_tiers(ctx: PricingContext, entry_id: str) -> List[PriceTier]:
    get_entry(ctx, entry_id)
    return tiers_for_entry(ctx, entry_id)


def convert_to_perpetual(
    monthly_price,
    quantity,
    category: Optional[str],
    config: Optional[PerpetualConfig] = None,
) -> Optional[PerpetualPricing]:
    """Perpetual license breakdown, or None when the category is subscription-only."""
    config = config or perpetual_config_from_rules()
    if not is_perpetual_eligible(category, config):
        logger.debug(f"Category '{category}' excluded from perpetual conversion")
        return None
    return calculate_perpetual_pricing(monthly_price, quantity, category, config)
