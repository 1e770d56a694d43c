from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .services.utils import ZERO

CATEGORIES = ("default", "cas", "cno", "ccs")
ENVIRONMENTS = ("production", "reference")
CURVE_MODES = ("smooth", "stepped", "manual")

DEFAULT_CATEGORY = "default"
DEFAULT_COST_SPLIT_RATIO = Decimal("0.60")
UNBOUNDED_QTY = Decimal("1e12")


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    code: str
    category: str = DEFAULT_CATEGORY
    unit: str = ""
    is_fixed_charge: bool = False
    description: str = ""


@dataclass(frozen=True)
class DiscountCurve:
    entry_id: str
    base_quantity: Decimal
    base_unit_price: Decimal
    per_double_discount: Decimal
    floor_price: Decimal
    mode: str = "smooth"
    bucket_count: int = 10
    max_quantity: Optional[Decimal] = None
    breakpoints: Tuple[Decimal, ...] = ()

    @property
    def is_manual(self) -> bool:
        return self.mode == "manual"

    @property
    def cap(self) -> Decimal:
        # A missing or zero cap means effectively unbounded.
        return self.max_quantity or UNBOUNDED_QTY


@dataclass(frozen=True)
class LadderTier:
    entry_id: str
    min_quantity: Decimal
    max_quantity: Optional[Decimal]
    unit_price: Decimal


@dataclass(frozen=True)
class FixedCharge:
    entry_id: str
    base_mrc: Decimal
    apply_term_discount: bool = True


@dataclass(frozen=True)
class PricingContext:
    """Fully resolved lookup tables for one calculation. Read-only."""
    entries: Dict[str, CatalogEntry] = field(default_factory=dict)
    curves: Dict[str, DiscountCurve] = field(default_factory=dict)
    ladders: Dict[str, List[LadderTier]] = field(default_factory=dict)
    term_factors: Dict[str, Dict[int, Decimal]] = field(default_factory=dict)  # category -> term -> factor
    fixed_charges: Dict[str, FixedCharge] = field(default_factory=dict)
    environment_overrides: Dict[str, Dict[str, Decimal]] = field(default_factory=dict)  # entry -> env -> factor
    default_environment_factors: Dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class LineItem:
    id: str
    package_id: Optional[str]
    entry_id: str
    quantity: Decimal
    term_months: Optional[int] = None
    environment: str = "production"

    def effective_term(self, package_term: int) -> int:
        return self.term_months if self.term_months is not None else package_term


@dataclass(frozen=True)
class Package:
    id: str
    term_months: int
    items: Tuple[LineItem, ...] = ()
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    id: str
    packages: Tuple[Package, ...] = ()
    use_aggregated_pricing: bool = False
    cost_split_ratio: Decimal = DEFAULT_COST_SPLIT_RATIO

    @property
    def items(self) -> List[LineItem]:
        return [item for pkg in self.packages for item in pkg.items]


@dataclass(frozen=True)
class PhaseContribution:
    package_id: Optional[str]
    quantity: Decimal
    term_months: int


@dataclass
class TimePhase:
    start: int
    end: int  # inclusive
    total_quantity: Decimal = ZERO
    contributions: List[PhaseContribution] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.start}-{self.end}"

    @property
    def duration(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class PhaseTrace:
    phase: str
    months: int
    unit_price: Decimal
    total_quantity: Decimal


@dataclass
class WeightedPrice:
    package_id: Optional[str]
    weighted_sum: Decimal = ZERO
    total_weight: int = 0
    phases: List[PhaseTrace] = field(default_factory=list)

    @property
    def final_price(self) -> Optional[Decimal]:
        if self.total_weight <= 0:
            return None
        return self.weighted_sum / Decimal(self.total_weight)


@dataclass
class PricingResult:
    item_id: str
    list_price: Decimal = ZERO
    volume_discount_pct: Decimal = ZERO
    term_discount_pct: Decimal = ZERO
    env_factor: Decimal = Decimal("1")
    unit_price: Decimal = ZERO
    total_discount_pct: Decimal = ZERO
    usage_total: Decimal = ZERO
    base_charge: Decimal = ZERO
    monthly_total: Decimal = ZERO
    annual_total: Decimal = ZERO
    aggregated_qty: Optional[Decimal] = None
    pricing_phases: List[PhaseTrace] = field(default_factory=list)
    ratio_factor: Optional[Decimal] = None


@dataclass(frozen=True)
class PackageTotals:
    package_id: str
    subtotal_monthly: Decimal
    subtotal_annual: Decimal


@dataclass
class QuoteCalculation:
    quote_id: str
    items: List[PricingResult]
    packages: List[PackageTotals]
    total_monthly: Decimal
    total_annual: Decimal


@dataclass(frozen=True)
class PriceTier:
    min_quantity: Decimal
    max_quantity: Optional[Decimal]
    price: Decimal


@dataclass(frozen=True)
class PerpetualConfig:
    compensation_term_months: int = 48
    maintenance_reduction_factor: Decimal = Decimal("0.7")
    maintenance_term_years: int = 3
    upgrade_protection_percent: Decimal = Decimal("15")
    maintenance_percent_cas: Decimal = Decimal("27")
    maintenance_percent_cno: Decimal = Decimal("19")
    maintenance_percent_default: Decimal = Decimal("20")
    exclude_cno_from_perpetual: bool = True


@dataclass(frozen=True)
class PerpetualPricing:
    perpetual_license: Decimal
    annual_maintenance: Decimal
    total_maintenance: Decimal
    upgrade_protection: Decimal
    total_perpetual: Decimal
