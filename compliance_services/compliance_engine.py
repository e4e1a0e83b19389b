"""
compliance_services.compliance_engine -- Transaction processing entrypoint.

Responsibility:
    Composes the GateOrchestrator and the FeeCalculator, maps internal gate
    results to the public response shape, and hands every response to an
    optional TransactionRecorder.

Architecture position:
    Services -- top of the service layer.  ``from_rules`` is the single
    place where the standard pipeline is wired from a rule set.

Invariants enforced:
    - ``process`` returns status CALCULATED or REJECTED only; FAILED is
      built by callers through ``failed_response``.
    - The InputValidation gate never appears in the public gate list.
    - EXEMPTION_CHECK always carries ``appliedExemptions``; other entries
      never do.
    - A recorder failure is logged and never changes the returned response.

Failure modes:
    - CalculationError (ReconciliationError, ExemptionDataMissingError)
      propagates to the caller; these indicate defects, not bad input.

Usage:
    from compliance_config import get_active_rules
    from compliance_services.compliance_engine import ComplianceEngine

    with ComplianceEngine.from_rules(get_active_rules()) as engine:
        response = engine.process(payload, {"customerType": "RETAIL"})
        response.to_dict()
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from compliance_config.bridges import (
    StaticExemptionRuleSource,
    StaticJurisdictionLookup,
    StaticMerchantVolumeSource,
    build_rate_table,
)
from compliance_config.schema import ComplianceRuleSet
from compliance_engines.fee_calculator import FeeCalculator
from compliance_kernel.domain.dtos import (
    ComplianceResponse,
    ExemptionData,
    FallbackPolicy,
    GateEntry,
    GateResult,
    TransactionStatus,
)
from compliance_kernel.domain.sources import JurisdictionLookup, TransactionRecorder
from compliance_kernel.domain.transaction import Transaction
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_services.gate_orchestrator import GateOrchestrator
from compliance_services.gates import (
    ADDRESS_VALIDATION,
    APPLICABILITY,
    EXEMPTION_CHECK,
    INPUT_VALIDATION,
    AddressValidationCache,
    AddressValidationGate,
    default_gates,
)

logger = get_logger("services.compliance_engine")

PUBLIC_GATE_NAMES: dict[str, str] = {
    ADDRESS_VALIDATION: "ADDRESS_VALIDATION",
    APPLICABILITY: "APPLICABILITY",
    EXEMPTION_CHECK: "EXEMPTION_CHECK",
}


def _payload_text(payload: Any, key: str) -> str | None:
    if isinstance(payload, Mapping):
        value = payload.get(key)
        if isinstance(value, str):
            return value
    return None


class ComplianceEngine:
    """
    Processes transactions through the gate chain and the fee calculator.

    Contract:
        ``process(payload, context)`` returns a ComplianceResponse whose
        ``calculation`` is present iff the status is CALCULATED.

    Guarantees:
        - Processing the same payload and context twice yields the same
          status, calculation and gate outcomes.

    Non-goals:
        - Does NOT validate JSON at an HTTP boundary; the payload is the
          already-decoded mapping.
    """

    def __init__(
        self,
        orchestrator: GateOrchestrator,
        calculator: FeeCalculator,
        *,
        recorder: TransactionRecorder | None = None,
    ):
        self._orchestrator = orchestrator
        self._calculator = calculator
        self._recorder = recorder

    @classmethod
    def from_rules(
        cls,
        rules: ComplianceRuleSet,
        *,
        jurisdiction_lookup: JurisdictionLookup | None = None,
        recorder: TransactionRecorder | None = None,
        cache: AddressValidationCache | None = None,
    ) -> ComplianceEngine:
        """
        Wire the standard pipeline from a rule set.

        Args:
            rules: Validated rule set.
            jurisdiction_lookup: Remote lookup for address validation.
                Defaults to the rule set's own jurisdictions.
            recorder: Optional sink for processed transactions.
            cache: Shared address-validation cache (a new one by default).
        """
        local_lookup = StaticJurisdictionLookup(rules)
        settings = rules.address_validation
        gates = default_gates(
            jurisdiction_lookup=jurisdiction_lookup or local_lookup,
            volumes=StaticMerchantVolumeSource(rules),
            exemption_rules=StaticExemptionRuleSource(rules),
            timeout_seconds=settings.timeout_seconds,
            fallback_policy=FallbackPolicy(settings.fallback_policy),
            fallback_lookup=local_lookup,
            supported_countries=settings.supported_countries,
            cache=cache,
            max_workers=settings.max_workers,
        )
        logger.info("compliance_engine_created", extra={
            "rule_set": rules.name,
            "checksum": rules.checksum,
            "fallback_policy": settings.fallback_policy,
            "timeout_seconds": settings.timeout_seconds,
            "max_workers": settings.max_workers,
            "recorder": type(recorder).__name__ if recorder is not None else None,
        })
        return cls(
            GateOrchestrator(gates),
            FeeCalculator(build_rate_table(rules)),
            recorder=recorder,
        )

    @property
    def orchestrator(self) -> GateOrchestrator:
        return self._orchestrator

    def process(
        self,
        payload: Any,
        context: Mapping[str, Any] | None = None,
    ) -> ComplianceResponse:
        """Run the gates and, if they all pass, calculate fees."""
        transaction_id = _payload_text(payload, "transactionId") or ""
        with LogContext.bind(
            transaction_id=transaction_id or None,
            merchant_id=_payload_text(payload, "merchantId"),
        ):
            t0 = time.monotonic()
            execution = self._orchestrator.execute(payload, context)
            gates = self._public_gates(execution.results)

            if not execution.passed:
                response = ComplianceResponse(
                    transaction_id=transaction_id,
                    status=TransactionStatus.REJECTED,
                    gates=gates,
                    audit_trail=execution.audit_trail,
                )
            else:
                exemption_data = self._exemption_data(execution.result_for(EXEMPTION_CHECK))
                calculation = self._calculator.calculate_fees(
                    Transaction.from_payload(payload), exemption_data,
                )
                response = ComplianceResponse(
                    transaction_id=transaction_id,
                    status=TransactionStatus.CALCULATED,
                    gates=gates,
                    calculation=calculation,
                    audit_trail=execution.audit_trail + calculation.audit_trail,
                )

            self._record(payload, response)

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info("transaction_processed", extra={
                "status": response.status.value,
                "total_fees": (
                    str(response.calculation.total_fees)
                    if response.calculation is not None else None
                ),
                "duration_ms": duration_ms,
            })
            return response

    @staticmethod
    def failed_response(transaction_id: str, error: BaseException | str) -> ComplianceResponse:
        """Caller-level FAILED response for an error raised by ``process``."""
        return ComplianceResponse(
            transaction_id=transaction_id,
            status=TransactionStatus.FAILED,
            gates=(),
            audit_trail=(f"Processing failed: {error}",),
        )

    def close(self) -> None:
        """Release the address-validation worker pool."""
        for gate in self._orchestrator.gates:
            if isinstance(gate, AddressValidationGate):
                gate.close()

    def __enter__(self) -> ComplianceEngine:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _public_gates(results: tuple[GateResult, ...]) -> tuple[GateEntry, ...]:
        entries = []
        for result in results:
            if result.gate_name == INPUT_VALIDATION:
                continue
            applied = None
            if result.gate_name == EXEMPTION_CHECK:
                applied = tuple(result.metadata.get("appliedExemptions", ()))
            entries.append(GateEntry(
                name=PUBLIC_GATE_NAMES.get(result.gate_name, result.gate_name.upper()),
                passed=result.passed,
                message=result.message,
                applied_exemptions=applied,
            ))
        return tuple(entries)

    @staticmethod
    def _exemption_data(result: GateResult | None) -> ExemptionData | None:
        """ExemptionData from the ExemptionCheck result; empty if that gate is not configured."""
        if result is None:
            return ExemptionData()
        return result.metadata.get("exemptionData")

    def _record(self, payload: Any, response: ComplianceResponse) -> None:
        if self._recorder is None:
            return
        try:
            self._recorder.record(payload, response)
        except Exception:
            logger.error("transaction_record_failed", extra={
                "status": response.status.value,
            }, exc_info=True)
