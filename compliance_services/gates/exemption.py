"""
ExemptionCheck gate -- identifies customer and item exemptions.

Produces ExemptionData for the fee calculator; never computes an amount.
Always passes.
"""

from __future__ import annotations

from compliance_kernel.domain.dtos import ExemptionData, GateResult
from compliance_kernel.domain.sources import ExemptionRuleSource
from compliance_services.gates.base import BaseGate, GateRequest

EXEMPTION_CHECK = "ExemptionCheck"


class ExemptionGate(BaseGate):
    """
    Builds ExemptionData from ``context["customerType"]`` and item rules.

    Metadata:
        exemptionData       the ExemptionData instance
        appliedExemptions   customer exemptions, then ``<itemId>: <reason>``
    """

    name = EXEMPTION_CHECK

    def __init__(self, rules: ExemptionRuleSource):
        self._rules = rules

    def execute(self, request: GateRequest) -> GateResult:
        transaction = request.transaction
        state = transaction.destination.state

        customer_exemptions: list[str] = []
        customer_type = request.context.get("customerType")
        if isinstance(customer_type, str) and customer_type in self._rules.exempt_customer_types():
            customer_exemptions.append(customer_type)

        item_rules = self._rules.exempt_item_rules()
        item_exemptions: dict[str, list[str]] = {}
        for item in transaction.items:
            if (item.category, state) in item_rules:
                item_exemptions.setdefault(item.id, []).append(
                    f"{item.category} exempt in {state}"
                )

        exemption_data = ExemptionData(
            customer_exemptions=tuple(customer_exemptions),
            item_exemptions=item_exemptions,
        )
        applied = exemption_data.applied_exemptions()

        message = (
            f"{len(applied)} exemption(s) applied" if applied else "No exemptions applied"
        )
        return self._pass(
            message,
            exemptionData=exemption_data,
            appliedExemptions=applied,
        )
