"""
Gate base classes.

Responsibility:
    Defines the single-method Gate contract, the GateRequest handed to every
    gate, and BaseGate with pass/fail helpers that stamp the gate name.

Architecture position:
    Services > Gates.  Gates may import from compliance_kernel and
    compliance_engines; never from compliance_config (collaborators are
    injected).

Invariants enforced:
    - Gates never raise for expected conditions; they return a failed
      GateResult carrying an ErrorType.
    - A gate never mutates the request payload or context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from compliance_kernel.domain.dtos import ErrorType, GateResult
from compliance_kernel.domain.transaction import Transaction


@dataclass
class GateRequest:
    """
    One transaction as seen by the gate chain.

    ``transaction`` parses the payload on first access; gates after
    InputValidation rely on it being well-formed.
    """

    payload: Any
    context: Mapping[str, Any] = field(default_factory=dict)

    @cached_property
    def transaction(self) -> Transaction:
        return Transaction.from_payload(self.payload)


class Gate(ABC):
    """
    One pipeline stage.

    Contract:
        ``execute`` returns a GateResult whose ``gate_name`` equals ``name``.
    """

    name: str = ""

    @abstractmethod
    def execute(self, request: GateRequest) -> GateResult:
        ...


class BaseGate(Gate):
    """Gate with result helpers."""

    def _pass(self, message: str, **metadata: Any) -> GateResult:
        return GateResult(
            gate_name=self.name,
            passed=True,
            message=message,
            metadata=metadata,
        )

    def _fail(self, message: str, error_type: ErrorType, **metadata: Any) -> GateResult:
        return GateResult(
            gate_name=self.name,
            passed=False,
            message=message,
            metadata=metadata,
            error_type=error_type,
        )
