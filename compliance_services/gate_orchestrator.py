"""
compliance_services.gate_orchestrator -- Sequential gate chain with short-circuit.

Responsibility:
    Runs an explicit ordered list of gates against one transaction, stopping
    at the first failure, and collects the results and audit trail.

Architecture position:
    Services -- orchestration over gates.  Gate construction happens in
    ``compliance_services.gates.default_gates`` or in the caller.

Invariants enforced:
    - Gates run strictly one after another, in list order, at most once
      per execution.
    - On the first failure no later gate runs and ``passed`` is False.
    - One audit line per executed gate: ``<gate> passed: <message>`` or
      ``<gate> failed: <message>``.
    - Records logged while a gate runs carry its name in the ``gate`` field.

Failure modes:
    - A gate that raises unexpectedly is recorded as a SYSTEM failure of
      that gate; the exception is logged with its traceback.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from compliance_kernel.domain.dtos import ErrorType, GateResult
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_services.gates.base import Gate, GateRequest

logger = get_logger("services.gate_orchestrator")


@dataclass(frozen=True)
class GateExecution:
    """Outcome of one orchestrator run."""

    results: tuple[GateResult, ...]
    passed: bool
    audit_trail: tuple[str, ...]

    def result_for(self, gate_name: str) -> GateResult | None:
        for result in self.results:
            if result.gate_name == gate_name:
                return result
        return None


class GateOrchestrator:
    """
    Executes gates sequentially.

    Contract:
        ``execute(payload, context)`` returns a GateExecution whose results
        are in execution order.

    Non-goals:
        - No retry of a failed gate; re-running ``execute`` starts over.
    """

    def __init__(self, gates: Iterable[Gate]):
        self._gates: tuple[Gate, ...] = tuple(gates)
        if not self._gates:
            raise ValueError("GateOrchestrator requires at least one gate")

    @property
    def gates(self) -> tuple[Gate, ...]:
        return self._gates

    def execute(
        self,
        payload: Any,
        context: Mapping[str, Any] | None = None,
    ) -> GateExecution:
        request = GateRequest(payload=payload, context=dict(context or {}))
        results: list[GateResult] = []
        audit: list[str] = []

        for gate in self._gates:
            with LogContext.bind(gate=gate.name):
                t0 = time.monotonic()
                result = self._run_gate(gate, request)
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                results.append(result)

                if result.passed:
                    audit.append(f"{result.gate_name} passed: {result.message}")
                    logger.info("gate_passed", extra={"duration_ms": duration_ms})
                    continue

                audit.append(f"{result.gate_name} failed: {result.message}")
                logger.info("gate_failed", extra={
                    "error_type": result.error_type,
                    "gate_message": result.message,
                    "duration_ms": duration_ms,
                })
            return GateExecution(
                results=tuple(results),
                passed=False,
                audit_trail=tuple(audit),
            )

        return GateExecution(
            results=tuple(results),
            passed=True,
            audit_trail=tuple(audit),
        )

    @staticmethod
    def _run_gate(gate: Gate, request: GateRequest) -> GateResult:
        try:
            return gate.execute(request)
        except Exception as e:
            logger.error("gate_raised", exc_info=True)
            return GateResult(
                gate_name=gate.name,
                passed=False,
                message=f"Unexpected error in {gate.name}: {e}",
                error_type=ErrorType.SYSTEM,
                metadata={"exception": type(e).__name__},
            )
