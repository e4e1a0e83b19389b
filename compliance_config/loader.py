"""
Rule Set Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML rule set and parses it into typed ``compliance_config.schema``
dataclasses.  The single public entry point for runtime rules is
``compliance_config.get_active_rules()``; this module is its tooling.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Numbers are converted to Decimal through ``str()``, never through float
  arithmetic.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for rule set identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric rates or volumes  -> ``ValueError``.
* State-level ``county_rate``/``county_name``  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import (
    AddressValidationDef,
    CategoryRuleDef,
    CityRuleDef,
    ComplianceRuleSet,
    ExemptionRulesDef,
    ItemExemptionRuleDef,
    MerchantVolumeDef,
    StateRuleDef,
)
from compliance_kernel.domain.values import to_decimal


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, where: str) -> Decimal:
    """Parse a YAML number (or numeric string) into a Decimal."""
    try:
        return to_decimal(value)
    except ValueError as e:
        raise ValueError(f"{where}: {e}") from e


def _optional_decimal(value: Any, where: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, where)


def parse_city(name: str, data: dict[str, Any] | None, state: str) -> CityRuleDef:
    data = data or {}
    where = f"states.{state}.cities.{name}"
    return CityRuleDef(
        name=name,
        county_rate=_optional_decimal(data.get("county_rate"), f"{where}.county_rate"),
        county_name=data.get("county_name"),
        city_rate=_optional_decimal(data.get("city_rate"), f"{where}.city_rate"),
    )


def parse_state(code: str, data: dict[str, Any] | None) -> StateRuleDef:
    """
    Parse a ``StateRuleDef``.

    ``cities`` may be a mapping (city -> overrides) or a plain list of
    supported city names.  County settings are only accepted on cities.
    """
    data = data or {}
    for key in ("county_rate", "county_name"):
        if key in data:
            raise ValueError(
                f"states.{code}.{key}: county rates are configured per city"
            )
    raw_cities = data.get("cities") or {}
    if isinstance(raw_cities, list):
        raw_cities = {name: None for name in raw_cities}

    return StateRuleDef(
        code=code,
        state_rate=parse_decimal(data.get("state_rate", 0), f"states.{code}.state_rate"),
        cities=tuple(
            parse_city(name, city_data, code) for name, city_data in raw_cities.items()
        ),
    )


def parse_merchant(data: dict[str, Any]) -> MerchantVolumeDef:
    where = f"merchants.volumes[{data.get('merchant_id')}/{data.get('state')}]"
    return MerchantVolumeDef(
        merchant_id=data["merchant_id"],
        state=data["state"],
        volume=parse_decimal(data.get("volume", 0), f"{where}.volume"),
        threshold=_optional_decimal(data.get("threshold"), f"{where}.threshold"),
    )


def parse_exemptions(data: dict[str, Any] | None) -> ExemptionRulesDef:
    data = data or {}
    return ExemptionRulesDef(
        customer_types=tuple(data.get("customer_types", ())),
        item_rules=tuple(
            ItemExemptionRuleDef(
                category=rule["category"],
                states=tuple(rule.get("states", ())),
            )
            for rule in data.get("item_rules", ())
        ),
    )


def parse_address_validation(data: dict[str, Any] | None) -> AddressValidationDef:
    data = data or {}
    defaults = AddressValidationDef()
    return AddressValidationDef(
        supported_countries=tuple(
            data.get("supported_countries", defaults.supported_countries)
        ),
        timeout_ms=int(data.get("timeout_ms", defaults.timeout_ms)),
        max_workers=int(data.get("max_workers", defaults.max_workers)),
        fallback_policy=str(data.get("fallback_policy", defaults.fallback_policy)),
    )


def parse_rule_set(data: dict[str, Any]) -> ComplianceRuleSet:
    """
    Parse a full ``ComplianceRuleSet`` from a YAML document.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if numeric fields cannot be parsed.
    """
    merchants = data.get("merchants") or {}
    return ComplianceRuleSet(
        name=data["name"],
        version=int(data.get("version", 1)),
        states=tuple(
            parse_state(code, state_data)
            for code, state_data in (data.get("states") or {}).items()
        ),
        categories=tuple(
            CategoryRuleDef(name=name, modifier=parse_decimal(value, f"categories.{name}"))
            for name, value in (data.get("categories") or {}).items()
        ),
        default_threshold=parse_decimal(
            merchants.get("default_threshold", 100000), "merchants.default_threshold",
        ),
        merchants=tuple(parse_merchant(m) for m in merchants.get("volumes", ())),
        exemptions=parse_exemptions(data.get("exemptions")),
        address_validation=parse_address_validation(data.get("address_validation")),
        checksum=compute_checksum(data),
    )


def load_rule_set(path: Path) -> ComplianceRuleSet:
    """Load and parse a rule set file (no validation)."""
    return parse_rule_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
