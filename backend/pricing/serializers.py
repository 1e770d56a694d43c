from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from rest_framework import serializers

from .dataclasses import (
    CATEGORIES,
    CURVE_MODES,
    DEFAULT_COST_SPLIT_RATIO,
    ENVIRONMENTS,
    CatalogEntry,
    DiscountCurve,
    FixedCharge,
    LadderTier,
    LineItem,
    Package,
    PricingContext,
    Quote,
)


def _decimal(**kwargs):
    return serializers.DecimalField(max_digits=24, decimal_places=8, **kwargs)


# --------------------- Pricing context (reference data rows) ---------------------

class CatalogEntrySerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    code = serializers.CharField(max_length=128, required=False, default="")
    category = serializers.ChoiceField(choices=CATEGORIES, default="default")
    unit = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    is_fixed_charge = serializers.BooleanField(required=False, default=False)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class DiscountCurveSerializer(serializers.Serializer):
    entry_id = serializers.CharField(max_length=64)
    base_quantity = _decimal(min_value=Decimal("0.00000001"))
    base_unit_price = _decimal(min_value=Decimal("0"))
    per_double_discount = _decimal(min_value=Decimal("0"), max_value=Decimal("1"))
    floor_price = _decimal(min_value=Decimal("0"))
    mode = serializers.ChoiceField(choices=CURVE_MODES, default="smooth")
    bucket_count = serializers.IntegerField(required=False, default=10, min_value=0)
    max_quantity = _decimal(required=False, allow_null=True, default=None)
    breakpoints = serializers.ListField(child=_decimal(), required=False, allow_null=True, default=list)


class LadderTierSerializer(serializers.Serializer):
    entry_id = serializers.CharField(max_length=64)
    min_quantity = _decimal()
    max_quantity = _decimal(required=False, allow_null=True, default=None)
    unit_price = _decimal(min_value=Decimal("0"))


class TermFactorSerializer(serializers.Serializer):
    category = serializers.CharField(max_length=32)
    term_months = serializers.IntegerField(min_value=1)
    factor = _decimal(min_value=Decimal("0"))


class FixedChargeSerializer(serializers.Serializer):
    entry_id = serializers.CharField(max_length=64)
    base_mrc = _decimal(min_value=Decimal("0"))
    apply_term_discount = serializers.BooleanField(required=False, default=True)


class EnvironmentFactorSerializer(serializers.Serializer):
    # No entry_id means the row is the global default for the environment
    entry_id = serializers.CharField(max_length=64, required=False, allow_null=True, default=None)
    environment = serializers.ChoiceField(choices=ENVIRONMENTS)
    factor = _decimal(min_value=Decimal("0"))


class PricingContextSerializer(serializers.Serializer):
    entries = CatalogEntrySerializer(many=True)
    curves = DiscountCurveSerializer(many=True, required=False, default=list)
    ladders = LadderTierSerializer(many=True, required=False, default=list)
    term_factors = TermFactorSerializer(many=True, required=False, default=list)
    fixed_charges = FixedChargeSerializer(many=True, required=False, default=list)
    environment_factors = EnvironmentFactorSerializer(many=True, required=False, default=list)


def build_pricing_context(data: Dict) -> PricingContext:
    """Index validated reference-data rows into the lookup tables the engine reads."""
    entries = {row["id"]: CatalogEntry(**row) for row in data["entries"]}

    curves = {}
    for row in data.get("curves", []):
        curves[row["entry_id"]] = DiscountCurve(
            entry_id=row["entry_id"],
            base_quantity=row["base_quantity"],
            base_unit_price=row["base_unit_price"],
            per_double_discount=row["per_double_discount"],
            floor_price=row["floor_price"],
            mode=row.get("mode", "smooth"),
            bucket_count=row.get("bucket_count", 10),
            max_quantity=row.get("max_quantity"),
            breakpoints=tuple(row.get("breakpoints") or ()),
        )

    ladders: Dict[str, List[LadderTier]] = {}
    for row in data.get("ladders", []):
        ladders.setdefault(row["entry_id"], []).append(LadderTier(**row))
    for tiers in ladders.values():
        tiers.sort(key=lambda t: t.min_quantity)

    term_factors: Dict[str, Dict[int, Decimal]] = {}
    for row in data.get("term_factors", []):
        term_factors.setdefault(row["category"], {})[row["term_months"]] = row["factor"]

    fixed_charges = {row["entry_id"]: FixedCharge(**row) for row in data.get("fixed_charges", [])}

    overrides: Dict[str, Dict[str, Decimal]] = {}
    defaults: Dict[str, Decimal] = {}
    for row in data.get("environment_factors", []):
        if row.get("entry_id"):
            overrides.setdefault(row["entry_id"], {})[row["environment"]] = row["factor"]
        else:
            defaults[row["environment"]] = row["factor"]

    return PricingContext(
        entries=entries,
        curves=curves,
        ladders=ladders,
        term_factors=term_factors,
        fixed_charges=fixed_charges,
        environment_overrides=overrides,
        default_environment_factors=defaults,
    )


# --------------------- Quote structure ---------------------

def item_id_for(package_id: str, position: int, item: Dict) -> str:
    """The item's own id, or a positional one (`<package id>-<n>`) when it has none."""
    return item.get("id") or f"{package_id}-{position + 1}"


class LineItemSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    entry_id = serializers.CharField(max_length=64)
    quantity = _decimal(min_value=Decimal("0"))
    term_months = serializers.IntegerField(required=False, allow_null=True, min_value=1, default=None)
    environment = serializers.ChoiceField(choices=ENVIRONMENTS, default="production")


class PackageSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    term_months = serializers.IntegerField(min_value=1)
    start_date = serializers.CharField(required=False, allow_null=True, default=None)
    end_date = serializers.CharField(required=False, allow_null=True, default=None)
    items = LineItemSerializer(many=True)


class QuoteSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    packages = PackageSerializer(many=True, allow_empty=False)
    use_aggregated_pricing = serializers.BooleanField(required=False, default=False)
    cost_split_ratio = serializers.DecimalField(
        max_digits=6, decimal_places=4, min_value=Decimal("0"), max_value=Decimal("1"),
        required=False, default=DEFAULT_COST_SPLIT_RATIO,
    )

    def validate_packages(self, value):
        package_ids = [pkg["id"] for pkg in value]
        if len(package_ids) != len(set(package_ids)):
            raise serializers.ValidationError("Package ids must be unique within a quote.")

        # Positional ids included
        item_ids = [
            item_id_for(pkg["id"], pos, item) for pkg in value for pos, item in enumerate(pkg["items"])
        ]
        if len(item_ids) != len(set(item_ids)):
            raise serializers.ValidationError("Line item ids must be unique within a quote.")
        return value


def build_line_item(data: Dict, package_id: Optional[str] = None) -> LineItem:
    return LineItem(
        id=data.get("id") or "",
        package_id=package_id,
        entry_id=data["entry_id"],
        quantity=data["quantity"],
        term_months=data.get("term_months"),
        environment=data.get("environment", "production"),
    )


def build_quote(data: Dict) -> Quote:
    packages = []
    for pkg in data["packages"]:
        items = []
        for pos, item in enumerate(pkg["items"]):
            item = {**item, "id": item_id_for(pkg["id"], pos, item)}
            items.append(build_line_item(item, package_id=pkg["id"]))
        packages.append(
            Package(
                id=pkg["id"],
                term_months=pkg["term_months"],
                items=tuple(items),
                start_date=pkg.get("start_date"),
                end_date=pkg.get("end_date"),
            )
        )
    return Quote(
        id=data["id"],
        packages=tuple(packages),
        use_aggregated_pricing=data.get("use_aggregated_pricing", False),
        cost_split_ratio=data.get("cost_split_ratio", DEFAULT_COST_SPLIT_RATIO),
    )


# --------------------- Requests ---------------------

class QuoteCalculateRequestSerializer(serializers.Serializer):
    context = PricingContextSerializer()
    quote = QuoteSerializer()


class PreviewRequestSerializer(serializers.Serializer):
    context = PricingContextSerializer()
    items = LineItemSerializer(many=True, allow_empty=False)


class PriceTiersRequestSerializer(serializers.Serializer):
    context = PricingContextSerializer()
    entry_id = serializers.CharField(max_length=64)


class ContextValidateRequestSerializer(serializers.Serializer):
    context = PricingContextSerializer()


class PerpetualRequestSerializer(serializers.Serializer):
    monthly_price = _decimal(min_value=Decimal("0"))
    quantity = _decimal(min_value=Decimal("0"))
    category = serializers.CharField(max_length=32, required=False, default="default")
    config = serializers.JSONField(required=False, allow_null=True, default=None)

    def validate_config(self, value):
        if value is None or isinstance(value, (dict, list)):
            return value
        raise serializers.ValidationError("config must be an object or a list of parameter rows.")


# --------------------- Responses ---------------------

def _rate(**kwargs):
    return serializers.DecimalField(max_digits=24, decimal_places=4, **kwargs)


def _money(**kwargs):
    return serializers.DecimalField(max_digits=24, decimal_places=2, **kwargs)


class PhaseTraceSerializer(serializers.Serializer):
    phase = serializers.CharField()
    months = serializers.IntegerField()
    unit_price = _rate()
    total_quantity = _rate()


class PricingResultSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    list_price = _rate()
    volume_discount_pct = _money()
    term_discount_pct = _money()
    env_factor = _rate()
    unit_price = _rate()
    total_discount_pct = _money()
    usage_total = _money()
    base_charge = _money()
    monthly_total = _money()
    annual_total = _money()
    aggregated_qty = _rate(allow_null=True)
    pricing_phases = PhaseTraceSerializer(many=True)
    ratio_factor = _rate(allow_null=True)


class PackageTotalsSerializer(serializers.Serializer):
    package_id = serializers.CharField()
    subtotal_monthly = _money()
    subtotal_annual = _money()


class QuoteCalculationSerializer(serializers.Serializer):
    quote_id = serializers.CharField()
    total_monthly = _money()
    total_annual = _money()
    packages = PackageTotalsSerializer(many=True)
    items = PricingResultSerializer(many=True)


class PriceTierSerializer(serializers.Serializer):
    min = _rate(source="min_quantity")
    max = _rate(source="max_quantity", allow_null=True)
    price = _rate()


class PerpetualPricingSerializer(serializers.Serializer):
    perpetual_license = _money()
    annual_maintenance = _money()
    total_maintenance = _money()
    upgrade_protection = _money()
    total_perpetual = _money()
