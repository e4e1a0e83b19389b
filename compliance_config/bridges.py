"""
Config -> Kernel Bridges.

Read-only collaborator implementations backed by a ComplianceRuleSet.  They
live in compliance_config (the producer) because the kernel must NEVER
import compliance_config.

Usage:
    from compliance_config import get_active_rules
    from compliance_config.bridges import build_rate_table, StaticJurisdictionLookup

    rules = get_active_rules()
    rate_table = build_rate_table(rules)
    lookup = StaticJurisdictionLookup(rules)
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType

from compliance_config.schema import ComplianceRuleSet
from compliance_engines.rate_table import RateTable
from compliance_kernel.domain.sources import (
    ExemptionRuleSource,
    JurisdictionLookup,
    MerchantVolumeSource,
    RateSource,
)

_ZERO = Decimal("0")


class StaticRateSource(RateSource):
    """Rates straight from the rule set."""

    def __init__(self, rules: ComplianceRuleSet):
        self._rules = rules
        self._modifiers = {c.name: c.modifier for c in rules.categories}

    def get_state_rate(self, state: str) -> Decimal:
        rule = self._rules.state(state)
        return rule.state_rate if rule is not None else _ZERO

    def get_county_rate(self, state: str, city: str | None = None) -> Decimal | None:
        """County rate configured on the city; states carry none of their own."""
        rule = self._rules.state(state)
        if rule is None or city is None:
            return None
        city_rule = rule.city(city)
        return city_rule.county_rate if city_rule is not None else None

    def get_city_rate(self, state: str, city: str) -> Decimal | None:
        rule = self._rules.state(state)
        city_rule = rule.city(city) if rule is not None else None
        return city_rule.city_rate if city_rule is not None else None

    def get_category_modifier(self, category: str) -> Decimal:
        return self._modifiers.get(category, _ZERO)

    def get_county_name(self, state: str, city: str | None = None) -> str | None:
        rule = self._rules.state(state)
        if rule is None or city is None:
            return None
        city_rule = rule.city(city)
        return city_rule.county_name if city_rule is not None else None

    def jurisdictions(self) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType(
            {state.code: state.city_names for state in self._rules.states}
        )

    def categories(self) -> tuple[str, ...]:
        return tuple(self._modifiers)


class StaticJurisdictionLookup(JurisdictionLookup):
    """
    Supported jurisdictions from the rule set.

    A state with no cities supports no city-level destinations.
    """

    def __init__(self, rules: ComplianceRuleSet):
        self._cities = {state.code: frozenset(state.city_names) for state in rules.states}

    def is_state_supported(self, state: str) -> bool:
        return state in self._cities

    def is_city_supported(self, state: str, city: str) -> bool:
        return city in self._cities.get(state, frozenset())


class StaticMerchantVolumeSource(MerchantVolumeSource):
    """Merchant volumes and thresholds from the rule set."""

    def __init__(self, rules: ComplianceRuleSet):
        self._default_threshold = rules.default_threshold
        self._entries = {(m.merchant_id, m.state): m for m in rules.merchants}

    def get_volume(self, merchant_id: str, state: str) -> Decimal:
        entry = self._entries.get((merchant_id, state))
        return entry.volume if entry is not None else _ZERO

    def get_threshold(self, merchant_id: str, state: str) -> Decimal:
        entry = self._entries.get((merchant_id, state))
        if entry is not None and entry.threshold is not None:
            return entry.threshold
        return self._default_threshold


class StaticExemptionRuleSource(ExemptionRuleSource):
    """Exemption rules from the rule set."""

    def __init__(self, rules: ComplianceRuleSet):
        self._customer_types = frozenset(rules.exemptions.customer_types)
        self._item_rules = frozenset(
            (rule.category, state)
            for rule in rules.exemptions.item_rules
            for state in rule.states
        )

    def exempt_customer_types(self) -> frozenset[str]:
        return self._customer_types

    def exempt_item_rules(self) -> frozenset[tuple[str, str]]:
        return self._item_rules


def build_rate_table(rules: ComplianceRuleSet) -> RateTable:
    """Snapshot the rule set's rates into a RateTable."""
    return RateTable.from_source(StaticRateSource(rules))
