from decimal import Decimal

import pytest

from pricing.dataclasses import (
    CatalogEntry,
    DiscountCurve,
    FixedCharge,
    LadderTier,
    LineItem,
    Package,
    PricingContext,
    Quote,
)
from pricing.services.pricing_rules import clear_pricing_rules_cache

D = Decimal

DEFAULT_TERMS = {1: D("1.20"), 12: D("1.00"), 24: D("0.90"), 36: D("0.80")}
CAS_TERMS = {1: D("1.25"), 12: D("1.00"), 24: D("0.85"), 36: D("0.72"), 48: D("0.65"), 60: D("0.52")}


def smooth_curve(entry_id="USG", **overrides):
    params = dict(
        entry_id=entry_id,
        base_quantity=D("100"),
        base_unit_price=D("10"),
        per_double_discount=D("0.1"),
        floor_price=D("2"),
        mode="smooth",
        bucket_count=10,
        max_quantity=D("1600"),
    )
    params.update(overrides)
    return DiscountCurve(**params)


def ladder(entry_id, *rows):
    return [LadderTier(entry_id, D(str(lo)), None if hi is None else D(str(hi)), D(str(price))) for lo, hi, price in rows]


def make_context(**overrides):
    entries = {
        "USG": CatalogEntry(id="USG", code="usage_sessions", category="default", unit="session"),
        "LAD": CatalogEntry(id="LAD", code="laddered_users", category="default", unit="user"),
        "BASE": CatalogEntry(id="BASE", code="platform_base", category="default", is_fixed_charge=True),
        "CAS_BASE": CatalogEntry(id="CAS_BASE", code="cas_base", category="cas", is_fixed_charge=True),
        "CAS_USG": CatalogEntry(id="CAS_USG", code="cas_usage", category="cas", unit="subscriber"),
    }
    params = dict(
        entries=entries,
        curves={"USG": smooth_curve("USG")},
        ladders={
            "LAD": ladder("LAD", (1, 49, "10"), (50, 99, "8"), (100, None, "6")),
            "CAS_USG": ladder("CAS_USG", (1, None, "10")),
        },
        term_factors={"default": dict(DEFAULT_TERMS), "cas": dict(CAS_TERMS)},
        fixed_charges={
            "BASE": FixedCharge("BASE", D("1000"), True),
            "CAS_BASE": FixedCharge("CAS_BASE", D("1000"), False),
        },
        environment_overrides={"USG": {"reference": D("1.5")}},
        default_environment_factors={"production": D("1.0"), "reference": D("1.2")},
    )
    params.update(overrides)
    return PricingContext(**params)


def staggered_quote(entry_id="LAD", aggregated=True):
    """Three packages sharing one entry with 12/24/36 month terms."""
    packages = tuple(
        Package(
            id=f"P{term}",
            term_months=term,
            items=(LineItem(id=f"I{term}", package_id=f"P{term}", entry_id=entry_id, quantity=D(str(qty))),),
        )
        for term, qty in ((12, 100), (24, 50), (36, 30))
    )
    return Quote(id="Q1", packages=packages, use_aggregated_pricing=aggregated)


@pytest.fixture
def ctx():
    return make_context()


@pytest.fixture(autouse=True)
def fresh_pricing_rules(monkeypatch):
    monkeypatch.delenv("PRICING_RULES_PATH", raising=False)
    clear_pricing_rules_cache()
    yield
    clear_pricing_rules_cache()


# Request-body form of a small context, as posted to the API
API_CONTEXT = {
    "entries": [
        {"id": "USG", "code": "usage_sessions", "unit": "session"},
        {"id": "LAD", "code": "laddered_users"},
        {"id": "BASE", "code": "platform_base", "is_fixed_charge": True},
    ],
    "curves": [
        {
            "entry_id": "USG",
            "base_quantity": "100",
            "base_unit_price": "10",
            "per_double_discount": "0.1",
            "floor_price": "2",
            "mode": "smooth",
            "max_quantity": "1600",
        }
    ],
    "ladders": [
        {"entry_id": "LAD", "min_quantity": "100", "unit_price": "6"},
        {"entry_id": "LAD", "min_quantity": "1", "max_quantity": "49", "unit_price": "10"},
        {"entry_id": "LAD", "min_quantity": "50", "max_quantity": "99", "unit_price": "8"},
    ],
    "term_factors": [
        {"category": "default", "term_months": 12, "factor": "1.00"},
        {"category": "default", "term_months": 24, "factor": "0.90"},
        {"category": "default", "term_months": 36, "factor": "0.80"},
    ],
    "fixed_charges": [{"entry_id": "BASE", "base_mrc": "1000"}],
    "environment_factors": [
        {"environment": "production", "factor": "1.0"},
        {"entry_id": "USG", "environment": "reference", "factor": "1.5"},
    ],
}
