"""
Rate Table - Immutable snapshot of jurisdiction rates and category modifiers.

Built once at process start from a RateSource and injected into the fee
calculator.  Every lookup is a pure function over the snapshot, so one table
can be shared by any number of threads.

Key scheme:
    state_rates         "CA"                 -> Decimal
    county_rates        "CA:Los Angeles"     -> Decimal (cities mapped to a county)
    city_rates          "CA:Los Angeles"     -> Decimal
    category_modifiers  "SOFTWARE"           -> Decimal
    county_names        same keys as county_rates -> label

Usage:
    from compliance_engines.rate_table import RateTable

    table = RateTable.from_source(rate_source)
    table.state_rate("CA")                      # Decimal("0.06")
    table.county_rate("CA", "Los Angeles")      # Decimal("0.0025")
    table.county_name("CA", "Los Angeles")      # "Los Angeles County"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from compliance_kernel.domain.sources import RateSource
from compliance_kernel.domain.values import ZERO
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.rate_table")


def jurisdiction_key(state: str, city: str | None = None) -> str:
    """``state`` or ``state:city``."""
    return f"{state}:{city}" if city is not None else state


def _freeze(data: Mapping | None) -> Mapping:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class RateTable:
    """
    Read-only rate snapshot.

    Guarantees:
        - All mappings are read-only proxies over private copies.
        - Unknown states and categories resolve to Decimal("0"); unmapped
          counties and unconfigured city rates resolve to None.
    """

    state_rates: Mapping[str, Decimal] = field(default_factory=dict)
    county_rates: Mapping[str, Decimal] = field(default_factory=dict)
    city_rates: Mapping[str, Decimal] = field(default_factory=dict)
    category_modifiers: Mapping[str, Decimal] = field(default_factory=dict)
    county_names: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "state_rates",
            "county_rates",
            "city_rates",
            "category_modifiers",
            "county_names",
        ):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    @classmethod
    def from_source(cls, source: RateSource) -> RateTable:
        """Snapshot every jurisdiction and category the source enumerates."""
        state_rates: dict[str, Decimal] = {}
        county_rates: dict[str, Decimal] = {}
        city_rates: dict[str, Decimal] = {}
        county_names: dict[str, str] = {}

        for state, cities in source.jurisdictions().items():
            state_rates[state] = source.get_state_rate(state)

            for city in cities:
                key = jurisdiction_key(state, city)
                county = source.get_county_rate(state, city)
                if county is not None:
                    county_rates[key] = county
                name = source.get_county_name(state, city)
                if name is not None:
                    county_names[key] = name
                city_rate = source.get_city_rate(state, city)
                if city_rate is not None:
                    city_rates[key] = city_rate

        category_modifiers = {
            category: source.get_category_modifier(category)
            for category in source.categories()
        }

        table = cls(
            state_rates=state_rates,
            county_rates=county_rates,
            city_rates=city_rates,
            category_modifiers=category_modifiers,
            county_names=county_names,
        )
        logger.info("rate_table_built", extra={
            "state_count": len(state_rates),
            "county_rate_count": len(county_rates),
            "city_rate_count": len(city_rates),
            "category_count": len(category_modifiers),
        })
        return table

    def state_rate(self, state: str) -> Decimal:
        return self.state_rates.get(state, ZERO)

    def county_rate(self, state: str, city: str) -> Decimal | None:
        """County rate for cities mapped to a county; None elsewhere."""
        return self.county_rates.get(jurisdiction_key(state, city))

    def county_name(self, state: str, city: str) -> str:
        name = self.county_names.get(jurisdiction_key(state, city))
        return name if name is not None else f"{city} County"

    def city_rate(self, state: str, city: str) -> Decimal | None:
        return self.city_rates.get(jurisdiction_key(state, city))

    def category_modifier(self, category: str) -> Decimal:
        return self.category_modifiers.get(category, ZERO)
