"""
DTOs -- immutable records passed between gates, the calculator and the engine.

Responsibility:
    Defines the internal gate result, the exemption data handed from the
    exemption gate to the fee calculator, the per-item fee breakdown and the
    public ComplianceResponse with its JSON rendering.

Invariants enforced:
    - Every record is a frozen dataclass; collections are tuples or
      read-only mappings.
    - ComplianceResponse.calculation is present iff status is CALCULATED.
    - Public gate names, status values and fee breakdown keys are part of the
      wire contract and are rendered exactly by ``to_dict()``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any


class ErrorType(str, Enum):
    """Failure classification carried by a failed gate."""

    VALIDATION = "VALIDATION"  # Caller can fix the input
    DEPENDENCY = "DEPENDENCY"  # Required lookup unavailable, no safe fallback
    SYSTEM = "SYSTEM"  # Unexpected internal failure


class FallbackPolicy(str, Enum):
    """What address validation does when the jurisdiction lookup fails."""

    REJECT = "reject"  # Fail with DEPENDENCY
    LOCAL_RULES = "local_rules"  # Re-check against local rules, uncached


class TransactionStatus(str, Enum):
    """Outcome of processing one transaction."""

    CALCULATED = "CALCULATED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"  # Caller-level wrapping error only


@dataclass(frozen=True)
class GateResult:
    """Outcome of one gate execution."""

    gate_name: str
    passed: bool
    message: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    error_type: ErrorType | None = None

    def __post_init__(self) -> None:
        if self.passed and self.error_type is not None:
            raise ValueError("A passing gate result cannot carry an error type")
        if not self.passed and self.error_type is None:
            raise ValueError("A failing gate result must carry an error type")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass(frozen=True)
class ExemptionData:
    """
    Exemptions identified for one transaction.

    Built by the exemption gate, consumed read-only by the fee calculator.
    """

    customer_exemptions: tuple[str, ...] = ()
    item_exemptions: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "customer_exemptions", tuple(self.customer_exemptions))
        object.__setattr__(
            self,
            "item_exemptions",
            MappingProxyType(
                {item_id: tuple(reasons) for item_id, reasons in self.item_exemptions.items()}
            ),
        )

    @property
    def is_customer_exempt(self) -> bool:
        return bool(self.customer_exemptions)

    def is_item_exempt(self, item_id: str) -> bool:
        """True when the customer or this item carries any exemption."""
        return self.is_customer_exempt or bool(self.item_exemptions.get(item_id))

    def applied_exemptions(self) -> tuple[str, ...]:
        """Flattened list: customer exemptions, then ``<itemId>: <reason>``."""
        applied = list(self.customer_exemptions)
        for item_id, reasons in self.item_exemptions.items():
            applied.extend(f"{item_id}: {reason}" for reason in reasons)
        return tuple(applied)


# ---------------------------------------------------------------------------
# Fee breakdown
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FeeComponent:
    """
    One layer of an item's fee.

    Exactly one of ``jurisdiction`` (state/county/city layers) or
    ``category`` (category modifier) is set.
    """

    rate: Decimal
    amount: Decimal
    jurisdiction: str | None = None
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.jurisdiction is not None:
            data["jurisdiction"] = self.jurisdiction
        if self.category is not None:
            data["category"] = self.category
        data["rate"] = float(self.rate)
        data["amount"] = float(self.amount)
        return data


@dataclass(frozen=True, slots=True)
class ItemFeeCalculation:
    """Fee breakdown for one item."""

    item_id: str
    amount: Decimal
    category: str
    state_rate: FeeComponent
    category_modifier: FeeComponent
    total_fee: Decimal
    county_rate: FeeComponent | None = None
    city_rate: FeeComponent | None = None

    def components(self) -> Iterator[tuple[str, FeeComponent]]:
        """Present components in wire order."""
        yield "stateRate", self.state_rate
        if self.county_rate is not None:
            yield "countyRate", self.county_rate
        if self.city_rate is not None:
            yield "cityRate", self.city_rate
        yield "categoryModifier", self.category_modifier

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "amount": float(self.amount),
            "category": self.category,
            "fees": {key: component.to_dict() for key, component in self.components()},
            "totalFee": float(self.total_fee),
        }


@dataclass(frozen=True, slots=True)
class CalculationResult:
    """Fees for every item plus the reconciled total."""

    items: tuple[ItemFeeCalculation, ...]
    total_fees: Decimal
    effective_rate: Decimal
    audit_trail: tuple[str, ...] = ()

    @property
    def item_fee_sum(self) -> Decimal:
        return sum((item.total_fee for item in self.items), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "totalFees": float(self.total_fees),
            "effectiveRate": float(self.effective_rate),
        }


# ---------------------------------------------------------------------------
# Public response
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GateEntry:
    """Public view of a gate result."""

    name: str
    passed: bool
    message: str | None = None
    applied_exemptions: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "passed": self.passed}
        if self.message is not None:
            data["message"] = self.message
        if self.applied_exemptions is not None:
            data["appliedExemptions"] = list(self.applied_exemptions)
        return data


@dataclass(frozen=True, slots=True)
class ComplianceResponse:
    """Structurally fixed response for one processed transaction."""

    transaction_id: str
    status: TransactionStatus
    gates: tuple[GateEntry, ...]
    audit_trail: tuple[str, ...]
    calculation: CalculationResult | None = None

    def __post_init__(self) -> None:
        has_calculation = self.calculation is not None
        if has_calculation != (self.status == TransactionStatus.CALCULATED):
            raise ValueError(
                f"calculation must be present iff status is CALCULATED "
                f"(status={self.status.value})"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "transactionId": self.transaction_id,
            "status": self.status.value,
            "gates": [gate.to_dict() for gate in self.gates],
        }
        if self.calculation is not None:
            data["calculation"] = self.calculation.to_dict()
        data["auditTrail"] = list(self.audit_trail)
        return data
