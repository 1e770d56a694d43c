from decimal import Decimal

from pricing.dataclasses import PerpetualConfig
from pricing.services.perpetual import calculate_perpetual_pricing, is_perpetual_eligible, maintenance_percent
from pricing.services.pricing_rules import perpetual_config_from_rules

D = Decimal


class TestPerpetualPricing:
    """Subscription to perpetual license conversion"""

    def test_default_category(self):
        pricing = calculate_perpetual_pricing(D("10"), D("100"), "default", PerpetualConfig())

        # 10 * 0.7 * 100 * 48
        assert pricing.perpetual_license == D("33600.00")
        assert pricing.annual_maintenance == D("6720.00")
        assert pricing.total_maintenance == D("20160.00")
        assert pricing.upgrade_protection == D("5040.00")
        assert pricing.total_perpetual == D("58800.00")

    def test_cas_maintenance_rate(self):
        pricing = calculate_perpetual_pricing(D("10"), D("100"), "cas", PerpetualConfig())
        assert pricing.annual_maintenance == D("9072.00")
        assert pricing.total_perpetual == D("65856.00")

    def test_cno_maintenance_rate(self):
        pricing = calculate_perpetual_pricing(D("10"), D("100"), "cno", PerpetualConfig())
        assert pricing.annual_maintenance == D("6384.00")
        assert pricing.total_perpetual == D("57792.00")

    def test_maintenance_percent_matches_by_substring(self):
        config = PerpetualConfig()
        assert maintenance_percent("CAS-Premium", config) == D("27")
        assert maintenance_percent(None, config) == D("20")

    def test_eligibility(self):
        assert not is_perpetual_eligible("cno", PerpetualConfig())
        assert is_perpetual_eligible("cno", PerpetualConfig(exclude_cno_from_perpetual=False))
        assert is_perpetual_eligible("cas", PerpetualConfig())


class TestPerpetualConfig:
    """Configuration sources for the conversion parameters"""

    def test_bundled_rules_match_defaults(self):
        assert perpetual_config_from_rules() == PerpetualConfig()

    def test_parameter_rows(self):
        config = perpetual_config_from_rules(
            [
                {"parameter": "COMPENSATION_TERM_MONTHS", "value": 36},
                {"parameter": "exclude_cno_from_perpetual", "value": 0},
            ]
        )
        assert config.compensation_term_months == 36
        assert config.exclude_cno_from_perpetual is False
        assert config.maintenance_percent_cas == D("27")

    def test_partial_mapping(self):
        config = perpetual_config_from_rules({"upgrade_protection_percent": "10", "maintenance_term_years": None})
        assert config.upgrade_protection_percent == D("10")
        assert config.maintenance_term_years == 3
