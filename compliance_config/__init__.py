"""
compliance_config -- single public entrypoint for compliance rules.

Responsibility:
    Provides the ONLY way to obtain the rule set at runtime through
    ``get_active_rules()``.  No other component may read rule files or the
    ``COMPLIANCE_RULES_PATH`` environment variable directly.

Architecture position:
    Configuration -- sits above ``compliance_kernel`` and
    ``compliance_engines`` and below ``compliance_services``.  The kernel
    MUST NEVER import from ``compliance_config``; bridges in this package
    translate the rule set into kernel collaborators.

Invariants enforced:
    - Single entrypoint: all runtime rules flow through ``get_active_rules()``.
    - Load-time validation: a rule set with validation errors is never
      returned.
    - Deterministic identity: the same YAML document always yields the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the rule file does not exist.
    - ``RuleSetValidationError`` -- the document cannot be parsed or fails
      validation; every problem is listed.

Audit relevance:
    Every successful load emits a ``compliance_rules_loaded`` record with the
    rule set name, version, checksum and source path, tying every fee
    calculation back to the exact rules that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from compliance_config.loader import load_rule_set
from compliance_config.schema import ComplianceRuleSet, FallbackPolicy
from compliance_config.validator import validate_rule_set
from compliance_kernel.exceptions import RuleSetValidationError

_logger = logging.getLogger("compliance_kernel.config")

RULES_PATH_ENV = "COMPLIANCE_RULES_PATH"

DEFAULT_RULES_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_rules(path: Path | str | None = None) -> ComplianceRuleSet:
    """The ONLY public rule set entrypoint.

    Resolution order for the rule file: ``path`` argument, then the
    ``COMPLIANCE_RULES_PATH`` environment variable, then the bundled
    ``sets/default.yaml``.

    Returns:
        A validated, frozen ``ComplianceRuleSet``.

    Raises:
        FileNotFoundError: If the rule file does not exist.
        RuleSetValidationError: If parsing or validation fails.
    """
    if path is None:
        path = os.environ.get(RULES_PATH_ENV) or DEFAULT_RULES_PATH
    source = Path(path)

    try:
        rules = load_rule_set(source)
    except (KeyError, ValueError, TypeError, yaml.YAMLError) as e:
        raise RuleSetValidationError(str(source), [f"{type(e).__name__}: {e}"]) from e

    validation = validate_rule_set(rules)
    for warning in validation.warnings:
        _logger.warning("compliance_rules_warning", extra={
            "source": str(source),
            "warning": warning,
        })
    if not validation.is_valid:
        _logger.error("compliance_rules_invalid", extra={
            "source": str(source),
            "errors": validation.errors,
        })
        raise RuleSetValidationError(str(source), validation.errors)

    _logger.info("compliance_rules_loaded", extra={
        "rule_set": rules.name,
        "rule_set_version": rules.version,
        "checksum": rules.checksum,
        "source": str(source),
        "state_count": len(rules.states),
        "merchant_count": len(rules.merchants),
        "fallback_policy": rules.address_validation.fallback_policy,
    })
    return rules


__all__ = [
    "ComplianceRuleSet",
    "DEFAULT_RULES_PATH",
    "FallbackPolicy",
    "RULES_PATH_ENV",
    "get_active_rules",
]
