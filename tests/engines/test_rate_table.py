"""Tests for the immutable RateTable snapshot."""

from decimal import Decimal

import pytest

from compliance_engines.rate_table import RateTable, jurisdiction_key


class TestJurisdictionKey:

    def test_state_only(self):
        assert jurisdiction_key("CA") == "CA"

    def test_state_and_city(self):
        assert jurisdiction_key("CA", "Los Angeles") == "CA:Los Angeles"


class TestRateTableFromRules:
    """Snapshot built from the bundled rule set."""

    def test_state_rates(self, rate_table):
        assert rate_table.state_rate("CA") == Decimal("0.06")
        assert rate_table.state_rate("NY") == Decimal("0.04")
        assert rate_table.state_rate("TX") == Decimal("0.0")

    def test_unknown_state_is_zero(self, rate_table):
        assert rate_table.state_rate("ZZ") == Decimal("0")

    def test_city_specific_county_override(self, rate_table):
        assert rate_table.county_rate("CA", "Los Angeles") == Decimal("0.0025")
        assert rate_table.county_name("CA", "Los Angeles") == "Los Angeles County"

    def test_county_rate_only_for_mapped_cities(self, rate_table):
        assert rate_table.county_rate("NY", "Buffalo") is None
        assert rate_table.county_rate("NY", "New York City") is None
        assert rate_table.county_rate("CA", "San Francisco") is None

    def test_no_county_rate(self, rate_table):
        assert rate_table.county_rate("CA", "San Diego") is None
        assert rate_table.county_rate("TX", "Austin") is None

    def test_county_name_defaults_to_city(self, rate_table):
        assert rate_table.county_name("NY", "Buffalo") == "Buffalo County"

    def test_state_key_is_not_a_county_fallback(self):
        table = RateTable(county_rates={"NY": Decimal("0.005")})
        assert table.county_rate("NY", "Buffalo") is None

    def test_city_rates(self, rate_table):
        assert rate_table.city_rate("CA", "Los Angeles") == Decimal("0.0225")
        assert rate_table.city_rate("NY", "New York City") == Decimal("0.01")
        assert rate_table.city_rate("NY", "Buffalo") is None

    def test_category_modifiers(self, rate_table):
        assert rate_table.category_modifier("SOFTWARE") == Decimal("0.01")
        assert rate_table.category_modifier("FOOD") == Decimal("0.0")
        assert rate_table.category_modifier("JEWELRY") == Decimal("0")


class TestRateTableImmutability:

    def test_mappings_are_read_only(self):
        table = RateTable(state_rates={"CA": Decimal("0.06")})
        with pytest.raises(TypeError):
            table.state_rates["CA"] = Decimal("0.07")

    def test_source_dict_is_copied(self):
        rates = {"CA": Decimal("0.06")}
        table = RateTable(state_rates=rates)
        rates["CA"] = Decimal("0.50")
        assert table.state_rate("CA") == Decimal("0.06")

    def test_build_is_logged(self, rules, captured_logs):
        from compliance_config.bridges import build_rate_table

        build_rate_table(rules)
        built = [r for r in captured_logs() if r["message"] == "rate_table_built"]
        assert built[0]["state_count"] == 3
        assert built[0]["city_rate_count"] == 2
