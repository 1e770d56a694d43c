"""
Tests for discount curve evaluation, ladder fallback and tier previews.
"""

from decimal import Decimal

import pytest

from pricing.services.curves import (
    bounds_from_curve,
    find_unit_price,
    geometric_bounds,
    list_unit_price,
    price_from_curve,
    price_from_ladder,
    tiers_for_entry,
)
from pricing.services.exceptions import NoMatchingTier, PricingUndefined

from .conftest import ladder, make_context, smooth_curve

D = Decimal


class TestSmoothCurve:
    """Continuous decay per doubling of quantity"""

    def test_two_doublings(self):
        """400 units against a 100 unit base is two doublings: 10 * 0.9^2"""
        assert price_from_curve(smooth_curve(), 400) == D("8.1000")

    def test_below_base_quantity_prices_at_base(self):
        curve = smooth_curve()
        assert price_from_curve(curve, 1) == D("10.0000")
        assert price_from_curve(curve, 50) == D("10.0000")
        assert price_from_curve(curve, 100) == D("10.0000")

    def test_never_below_floor(self):
        curve = smooth_curve(max_quantity=None)
        # 2^20 times the base would be 10 * 0.9^20 ~= 1.22 without the floor
        assert price_from_curve(curve, 100 * 2 ** 20) == D("2.0000")

    def test_non_increasing_in_quantity(self):
        curve = smooth_curve()
        prices = [price_from_curve(curve, q) for q in (1, 100, 150, 200, 333, 400, 1000, 5000, 10 ** 6)]
        assert all(a >= b for a, b in zip(prices, prices[1:]))
        assert all(p >= curve.floor_price for p in prices)


class TestSteppedCurve:
    """Discrete buckets sampling the smooth curve at each lower boundary"""

    def test_geometric_bounds_are_pinned_to_base_and_cap(self):
        bounds = geometric_bounds(D("100"), D("1000"), 7)
        assert len(bounds) == 7
        assert bounds[0] == D("100")
        assert bounds[-1] == D("1000")
        assert all(a < b for a, b in zip(bounds, bounds[1:]))

    def test_geometric_bounds_collapse_when_base_equals_cap(self):
        assert geometric_bounds(D("50"), D("50"), 5) == [D("50"), D("50")]

    def test_geometric_bounds_need_at_least_two_steps(self):
        bounds = geometric_bounds(D("10"), D("1000"), 1)
        assert bounds == [D("10"), D("1000")]

    def test_bucket_price_is_curve_at_lower_bound(self):
        curve = smooth_curve(mode="stepped", bucket_count=5)  # bounds 100, 200, 400, 800, 1600
        assert price_from_curve(curve, 150) == D("10.0000")
        assert price_from_curve(curve, 300) == D("9.0000")
        assert price_from_curve(curve, 1000) == D("7.2900")

    def test_at_or_above_cap_uses_last_bucket(self):
        curve = smooth_curve(mode="stepped", bucket_count=5)
        assert price_from_curve(curve, 1600) == D("7.2900")
        assert price_from_curve(curve, 50000) == D("7.2900")

    def test_custom_breakpoints(self):
        curve = smooth_curve(mode="stepped", max_quantity=D("1000"), breakpoints=(D("500"), D("200"), D("500")))
        assert bounds_from_curve(curve) == [D("100"), D("200"), D("500"), D("1000")]

        smooth = smooth_curve(max_quantity=D("1000"))
        assert price_from_curve(curve, 600) == price_from_curve(smooth, 500)

    def test_breakpoints_beyond_cap_are_dropped(self):
        curve = smooth_curve(mode="stepped", max_quantity=D("1000"), breakpoints=(D("300"), D("5000")))
        assert bounds_from_curve(curve) == [D("100"), D("300"), D("1000")]

    def test_breakpoints_ignored_outside_stepped_mode(self):
        curve = smooth_curve(mode="manual", bucket_count=5, breakpoints=(D("300"),))
        bounds = bounds_from_curve(curve)
        assert len(bounds) == 5
        assert bounds[0] == D("100")
        assert bounds[-1] == D("1600")

    def test_missing_cap_means_unbounded(self):
        curve = smooth_curve(mode="stepped", max_quantity=None, bucket_count=3)
        assert bounds_from_curve(curve)[-1] == D("1e12")


class TestLadder:
    """Explicit tier ladders"""

    tiers = ladder("LAD", (1, 49, "10"), (50, 99, "8"), (100, None, "6"))

    def test_tier_lookup(self):
        assert price_from_ladder(self.tiers, 1) == D("10.0000")
        assert price_from_ladder(self.tiers, 49) == D("10.0000")
        assert price_from_ladder(self.tiers, 50) == D("8.0000")
        assert price_from_ladder(self.tiers, 250000) == D("6.0000")

    def test_bounded_last_tier_does_not_clamp(self):
        bounded = ladder("LAD", (1, 49, "10"), (50, 99, "8"))
        with pytest.raises(NoMatchingTier, match="No matching tier for qty 100"):
            price_from_ladder(bounded, 100)

    def test_quantity_below_first_tier(self):
        with pytest.raises(NoMatchingTier):
            price_from_ladder(self.tiers, D("0.5"))

    def test_empty_ladder(self):
        with pytest.raises(PricingUndefined, match="No ladder defined"):
            price_from_ladder([], 10)


class TestFindUnitPrice:
    """Source selection between curve and ladder"""

    def test_curve_wins_over_ladder(self):
        ctx = make_context(ladders={"USG": ladder("USG", (1, None, "99"))})
        assert find_unit_price(ctx, "USG", 400) == D("8.1000")

    def test_manual_curve_defers_to_ladder(self):
        ctx = make_context(
            curves={"USG": smooth_curve(mode="manual")},
            ladders={"USG": ladder("USG", (1, None, "4.5"))},
        )
        assert find_unit_price(ctx, "USG", 400) == D("4.5000")

    def test_manual_curve_without_ladder_is_used(self):
        ctx = make_context(curves={"USG": smooth_curve(mode="manual", bucket_count=5)}, ladders={})
        assert find_unit_price(ctx, "USG", 300) == D("9.0000")

    def test_no_pricing_defined(self):
        ctx = make_context(curves={}, ladders={})
        with pytest.raises(PricingUndefined, match="USG"):
            find_unit_price(ctx, "USG", 1)

    def test_list_price_failure_is_none(self):
        ctx = make_context(ladders={"LAD": ladder("LAD", (10, 20, "5"))})
        assert list_unit_price(ctx, "LAD") is None
        assert list_unit_price(ctx, "USG") == D("10.0000")


class TestTiersForEntry:
    """Display tiers"""

    def test_curve_tiers(self):
        ctx = make_context(curves={"USG": smooth_curve(mode="stepped", bucket_count=5)})
        tiers = tiers_for_entry(ctx, "USG")

        assert [(t.min_quantity, t.max_quantity) for t in tiers] == [
            (D("100"), D("199")),
            (D("200"), D("399")),
            (D("400"), D("799")),
            (D("800"), D("1599")),
            (D("1600"), None),
        ]
        assert [t.price for t in tiers[:4]] == [D("10.0000"), D("9.0000"), D("8.1000"), D("7.2900")]
        # The open tier starts at the cap but still prices in the last bucket
        assert tiers[-1].price == D("7.2900")

    def test_ladder_tiers_verbatim(self, ctx):
        tiers = tiers_for_entry(ctx, "LAD")
        assert [(t.min_quantity, t.max_quantity, t.price) for t in tiers] == [
            (D("1"), D("49"), D("10")),
            (D("50"), D("99"), D("8")),
            (D("100"), None, D("6")),
        ]

    def test_nothing_to_show(self, ctx):
        assert tiers_for_entry(ctx, "BASE") == []
