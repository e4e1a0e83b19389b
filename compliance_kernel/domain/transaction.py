"""
Transaction -- immutable view of a validated transaction payload.

Responsibility:
    Parses the camelCase wire payload into frozen dataclasses with Decimal
    amounts. Parsing assumes the payload already passed input validation;
    it does not repeat the business checks (currency, item-sum tolerance).

Failure modes:
    - TransactionPayloadError if a required field is missing or has the
      wrong type. Callers that validate first never see this.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from compliance_kernel.domain.values import to_decimal
from compliance_kernel.exceptions import TransactionPayloadError


@dataclass(frozen=True, slots=True)
class Destination:
    """Shipping destination used to resolve jurisdictions."""

    country: str
    state: str
    city: str

    @property
    def cache_key(self) -> str:
        """Address-validation cache key (``state:city``)."""
        return f"{self.state}:{self.city}"


@dataclass(frozen=True, slots=True)
class LineItem:
    """One purchased item."""

    id: str
    category: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    A validated e-commerce transaction.

    Guarantees:
        - items is a non-empty tuple in request order.
        - All amounts are Decimal.
    """

    id: str
    merchant_id: str
    customer_id: str
    destination: Destination
    items: tuple[LineItem, ...]
    total_amount: Decimal
    currency: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Transaction:
        """Build a Transaction from a wire payload (camelCase keys)."""
        destination = _require_mapping(payload, "destination")
        raw_items = payload.get("items")
        if not isinstance(raw_items, (list, tuple)) or not raw_items:
            raise TransactionPayloadError("items", "must be a non-empty list")

        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, Mapping):
                raise TransactionPayloadError(f"items[{index}]", "must be an object")
            items.append(
                LineItem(
                    id=_require_str(raw, "id", f"items[{index}].id"),
                    category=_require_str(raw, "category", f"items[{index}].category"),
                    amount=_require_decimal(raw, "amount", f"items[{index}].amount"),
                )
            )

        return cls(
            id=_require_str(payload, "transactionId"),
            merchant_id=_require_str(payload, "merchantId"),
            customer_id=_require_str(payload, "customerId"),
            destination=Destination(
                country=_require_str(destination, "country", "destination.country"),
                state=_require_str(destination, "state", "destination.state"),
                city=_require_str(destination, "city", "destination.city"),
            ),
            items=tuple(items),
            total_amount=_require_decimal(payload, "totalAmount"),
            currency=_require_str(payload, "currency"),
        )

    @property
    def items_total(self) -> Decimal:
        """Exact Decimal sum of item amounts."""
        return sum((item.amount for item in self.items), Decimal("0"))


def _require_mapping(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if not isinstance(value, Mapping):
        raise TransactionPayloadError(key, "must be an object")
    return value


def _require_str(data: Mapping[str, Any], key: str, field: str | None = None) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise TransactionPayloadError(field or key, "must be a non-empty string")
    return value


def _require_decimal(
    data: Mapping[str, Any], key: str, field: str | None = None,
) -> Decimal:
    try:
        return to_decimal(data.get(key))
    except ValueError as e:
        raise TransactionPayloadError(field or key, str(e)) from e
