"""
Gate chain for transaction processing.

Standard order:
    InputValidation -> AddressValidation -> Applicability -> ExemptionCheck

The order is data: ``default_gates()`` builds the list handed to the
GateOrchestrator.
"""

from __future__ import annotations

from compliance_kernel.domain.dtos import FallbackPolicy
from compliance_kernel.domain.sources import (
    ExemptionRuleSource,
    JurisdictionLookup,
    MerchantVolumeSource,
)
from compliance_services.gates.address_validation import (
    ADDRESS_VALIDATION,
    DEFAULT_TIMEOUT_SECONDS,
    AddressValidationCache,
    AddressValidationGate,
)
from compliance_services.gates.applicability import APPLICABILITY, ApplicabilityGate
from compliance_services.gates.base import BaseGate, Gate, GateRequest
from compliance_services.gates.exemption import EXEMPTION_CHECK, ExemptionGate
from compliance_services.gates.input_validation import (
    INPUT_VALIDATION,
    InputValidationGate,
)


def default_gates(
    *,
    jurisdiction_lookup: JurisdictionLookup,
    volumes: MerchantVolumeSource,
    exemption_rules: ExemptionRuleSource,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    fallback_policy: FallbackPolicy = FallbackPolicy.REJECT,
    fallback_lookup: JurisdictionLookup | None = None,
    supported_countries: tuple[str, ...] = ("US",),
    cache: AddressValidationCache | None = None,
    max_workers: int = 4,
) -> list[Gate]:
    """Build the standard ordered gate list."""
    return [
        InputValidationGate(),
        AddressValidationGate(
            jurisdiction_lookup,
            timeout_seconds=timeout_seconds,
            fallback_policy=fallback_policy,
            fallback_lookup=fallback_lookup,
            supported_countries=supported_countries,
            cache=cache,
            max_workers=max_workers,
        ),
        ApplicabilityGate(volumes),
        ExemptionGate(exemption_rules),
    ]


__all__ = [
    "ADDRESS_VALIDATION",
    "APPLICABILITY",
    "EXEMPTION_CHECK",
    "INPUT_VALIDATION",
    "AddressValidationCache",
    "AddressValidationGate",
    "ApplicabilityGate",
    "BaseGate",
    "ExemptionGate",
    "Gate",
    "GateRequest",
    "InputValidationGate",
    "default_gates",
]
