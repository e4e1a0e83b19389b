"""
Rule Set Validator (``compliance_config.validator``).

Responsibility
--------------
Validates a ``ComplianceRuleSet`` before it is handed to the runtime,
collecting every problem rather than stopping at the first.

Invariants enforced
-------------------
* Rates and category modifiers are non-negative.
* The default threshold and any per-merchant threshold are positive;
  volumes are non-negative.
* The fallback policy is a known ``FallbackPolicy``; the lookup timeout and
  worker count are positive; at least one country is supported.
* Exemption rules and merchant volumes reference configured states.

Failure modes
-------------
* Validation errors -> the rule set MUST NOT be used.
* Warnings (e.g. a category with no modifier referenced by an exemption)
  do not block loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from compliance_config.schema import ComplianceRuleSet, FallbackPolicy

_ZERO = Decimal("0")


@dataclass
class RuleSetValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_rule_set(rules: ComplianceRuleSet) -> RuleSetValidationResult:
    """Validate a parsed rule set."""
    result = RuleSetValidationResult()

    _validate_states(rules, result)
    _validate_categories(rules, result)
    _validate_merchants(rules, result)
    _validate_exemptions(rules, result)
    _validate_address_validation(rules, result)

    return result


def _check_rate(value: Decimal | None, where: str, result: RuleSetValidationResult) -> None:
    if value is not None and value < _ZERO:
        result.add_error(f"{where} must not be negative (got {value})")


def _validate_states(rules: ComplianceRuleSet, result: RuleSetValidationResult) -> None:
    if not rules.states:
        result.add_error("At least one state must be configured")

    seen: set[str] = set()
    for state in rules.states:
        if state.code in seen:
            result.add_error(f"Duplicate state: {state.code}")
        seen.add(state.code)

        _check_rate(state.state_rate, f"{state.code} state_rate", result)
        for city in state.cities:
            where = f"{state.code}:{city.name}"
            _check_rate(city.county_rate, f"{where} county_rate", result)
            _check_rate(city.city_rate, f"{where} city_rate", result)


def _validate_categories(rules: ComplianceRuleSet, result: RuleSetValidationResult) -> None:
    for category in rules.categories:
        _check_rate(category.modifier, f"Category {category.name} modifier", result)


def _validate_merchants(rules: ComplianceRuleSet, result: RuleSetValidationResult) -> None:
    if rules.default_threshold <= _ZERO:
        result.add_error(
            f"default_threshold must be positive (got {rules.default_threshold})"
        )

    states = set(rules.state_codes)
    for merchant in rules.merchants:
        where = f"Merchant {merchant.merchant_id} in {merchant.state}"
        if merchant.volume < _ZERO:
            result.add_error(f"{where}: volume must not be negative (got {merchant.volume})")
        if merchant.threshold is not None and merchant.threshold <= _ZERO:
            result.add_error(
                f"{where}: threshold must be positive (got {merchant.threshold})"
            )
        if merchant.state not in states:
            result.add_warning(f"{where}: state is not configured")


def _validate_exemptions(rules: ComplianceRuleSet, result: RuleSetValidationResult) -> None:
    states = set(rules.state_codes)
    categories = {category.name for category in rules.categories}
    for rule in rules.exemptions.item_rules:
        for state in rule.states:
            if state not in states:
                result.add_error(
                    f"Exemption rule for {rule.category} references unknown state {state}"
                )
        if rule.category not in categories:
            result.add_warning(
                f"Exemption rule references category {rule.category} with no modifier"
            )


def _validate_address_validation(
    rules: ComplianceRuleSet, result: RuleSetValidationResult,
) -> None:
    settings = rules.address_validation
    known = {policy.value for policy in FallbackPolicy}
    if settings.fallback_policy not in known:
        result.add_error(
            f"Unknown fallback_policy {settings.fallback_policy!r} "
            f"(expected one of {sorted(known)})"
        )
    if settings.timeout_ms <= 0:
        result.add_error(f"timeout_ms must be positive (got {settings.timeout_ms})")
    if settings.max_workers <= 0:
        result.add_error(f"max_workers must be positive (got {settings.max_workers})")
    if not settings.supported_countries:
        result.add_error("At least one supported country is required")
