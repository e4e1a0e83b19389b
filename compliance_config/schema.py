"""
ComplianceRuleSet schema.

The canonical data model for the rule set: YAML is parsed into these types
by the loader, checked by the validator, and translated into kernel
collaborators by the bridges.  Every type is a frozen dataclass; amounts and
rates are Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from compliance_kernel.domain.dtos import FallbackPolicy

# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CityRuleDef:
    """A supported city and its optional county/city overrides."""

    name: str
    county_rate: Decimal | None = None
    county_name: str | None = None
    city_rate: Decimal | None = None


@dataclass(frozen=True)
class StateRuleDef:
    """A supported state, its rate and cities.

    County rates are configured per city; a city without one carries no
    county fee.
    """

    code: str
    state_rate: Decimal
    cities: tuple[CityRuleDef, ...] = ()

    def city(self, name: str) -> CityRuleDef | None:
        for city in self.cities:
            if city.name == name:
                return city
        return None

    @property
    def city_names(self) -> tuple[str, ...]:
        return tuple(city.name for city in self.cities)


@dataclass(frozen=True)
class CategoryRuleDef:
    name: str
    modifier: Decimal


# ---------------------------------------------------------------------------
# Merchants and exemptions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MerchantVolumeDef:
    """Sales volume of one merchant in one state."""

    merchant_id: str
    state: str
    volume: Decimal
    threshold: Decimal | None = None  # None = rule set default


@dataclass(frozen=True)
class ItemExemptionRuleDef:
    """Items of ``category`` are exempt in each of ``states``."""

    category: str
    states: tuple[str, ...]


@dataclass(frozen=True)
class ExemptionRulesDef:
    customer_types: tuple[str, ...] = ()
    item_rules: tuple[ItemExemptionRuleDef, ...] = ()


# ---------------------------------------------------------------------------
# Address validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddressValidationDef:
    supported_countries: tuple[str, ...] = ("US",)
    timeout_ms: int = 5000
    max_workers: int = 4  # Lookup worker threads
    fallback_policy: str = FallbackPolicy.REJECT.value

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComplianceRuleSet:
    """
    The complete rule set.

    Key distinction:
        ComplianceRuleSet = loaded, validated configuration
        RateTable         = runtime snapshot built from it (compliance_engines)
    """

    name: str
    version: int
    states: tuple[StateRuleDef, ...]
    categories: tuple[CategoryRuleDef, ...]
    default_threshold: Decimal
    merchants: tuple[MerchantVolumeDef, ...] = ()
    exemptions: ExemptionRulesDef = ExemptionRulesDef()
    address_validation: AddressValidationDef = AddressValidationDef()
    checksum: str = ""

    def state(self, code: str) -> StateRuleDef | None:
        for state in self.states:
            if state.code == code:
                return state
        return None

    @property
    def state_codes(self) -> tuple[str, ...]:
        return tuple(state.code for state in self.states)
