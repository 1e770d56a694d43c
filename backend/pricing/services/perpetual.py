from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..dataclasses import PerpetualConfig, PerpetualPricing
from .utils import HUNDRED, d, round2


def maintenance_percent(category: Optional[str], config: PerpetualConfig) -> Decimal:
    cat = (category or "").lower()
    if "cas" in cat:
        return d(config.maintenance_percent_cas)
    if "cno" in cat:
        return d(config.maintenance_percent_cno)
    return d(config.maintenance_percent_default)


def is_perpetual_eligible(category: Optional[str], config: PerpetualConfig) -> bool:
    return not (config.exclude_cno_from_perpetual and "cno" in (category or "").lower())


def calculate_perpetual_pricing(monthly_price, quantity, category: Optional[str], config: PerpetualConfig) -> PerpetualPricing:
    """
    Convert a monthly subscription price into a one-time license plus
    maintenance and upgrade protection.

    The subscription price bundles maintenance/support, so the license-only
    share is taken first, then multiplied out over the compensation term.
    """
    license_only = d(monthly_price) * d(config.maintenance_reduction_factor)
    perpetual_license = license_only * d(quantity) * Decimal(config.compensation_term_months)

    annual_maintenance = perpetual_license * maintenance_percent(category, config) / HUNDRED
    total_maintenance = annual_maintenance * Decimal(config.maintenance_term_years)
    upgrade_protection = perpetual_license * d(config.upgrade_protection_percent) / HUNDRED

    return PerpetualPricing(
        perpetual_license=round2(perpetual_license),
        annual_maintenance=round2(annual_maintenance),
        total_maintenance=round2(total_maintenance),
        upgrade_protection=round2(upgrade_protection),
        total_perpetual=round2(perpetual_license + total_maintenance + upgrade_protection),
    )
