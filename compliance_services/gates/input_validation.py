"""
InputValidation gate -- structural checks on the raw payload.

Internal only: its result never appears in the public gate list.  Checks run
in a fixed order and the first violation is returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from compliance_kernel.domain.dtos import ErrorType, GateResult
from compliance_kernel.domain.values import (
    AMOUNT_TOLERANCE,
    MAX_AMOUNT,
    SUPPORTED_CURRENCY,
    ZERO,
    format_amount,
    is_number,
    to_decimal,
)
from compliance_services.gates.base import BaseGate, GateRequest

INPUT_VALIDATION = "InputValidation"


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _is_non_negative_number(value: Any) -> bool:
    return is_number(value) and to_decimal(value) >= ZERO


def _exceeds_max(value: Any) -> bool:
    return to_decimal(value) > MAX_AMOUNT


class InputValidationGate(BaseGate):
    """Validates payload structure, currency and item-sum consistency."""

    name = INPUT_VALIDATION

    def execute(self, request: GateRequest) -> GateResult:
        tx = request.payload
        if not isinstance(tx, Mapping):
            return self._invalid("Transaction is required")

        for key in ("transactionId", "merchantId", "customerId"):
            if not _is_text(tx.get(key)):
                return self._invalid(f"{key} is required and must be a string")

        destination = tx.get("destination")
        if not isinstance(destination, Mapping):
            return self._invalid("destination is required")
        for key in ("country", "state", "city"):
            if not _is_text(destination.get(key)):
                return self._invalid(f"destination.{key} is required")

        items = tx.get("items")
        if not isinstance(items, (list, tuple)) or not items:
            return self._invalid("items is required and must be a non-empty array")

        for item in items:
            if not isinstance(item, Mapping) or not _is_text(item.get("id")):
                return self._invalid("Each item must have an id (string)")
            if not _is_text(item.get("category")):
                return self._invalid("Each item must have a category (string)")
            if not _is_non_negative_number(item.get("amount")):
                return self._invalid("Each item must have a non-negative amount (number)")
            if _exceeds_max(item["amount"]):
                return self._invalid(
                    f"Each item amount must not exceed {format_amount(MAX_AMOUNT)}"
                )

        if not _is_non_negative_number(tx.get("totalAmount")):
            return self._invalid("totalAmount is required and must be a non-negative number")
        if _exceeds_max(tx["totalAmount"]):
            return self._invalid(
                f"totalAmount must not exceed {format_amount(MAX_AMOUNT)}"
            )

        currency = tx.get("currency")
        if not _is_text(currency):
            return self._invalid("currency is required and must be a string")
        if currency != SUPPORTED_CURRENCY:
            return self._invalid(
                f"Unsupported currency: {currency}. Only {SUPPORTED_CURRENCY} is supported"
            )

        items_sum = sum((to_decimal(item["amount"]) for item in items), Decimal("0"))
        total = to_decimal(tx["totalAmount"])
        if abs(items_sum - total) > AMOUNT_TOLERANCE:
            return self._invalid(
                f"Items sum ({items_sum}) does not match totalAmount ({total})"
            )

        return self._pass("Input validation passed")

    def _invalid(self, message: str) -> GateResult:
        return self._fail(message, ErrorType.VALIDATION)
