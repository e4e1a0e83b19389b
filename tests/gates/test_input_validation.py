"""Tests for the InputValidation gate: first violation wins, all VALIDATION."""

from decimal import Decimal

import pytest

from compliance_kernel.domain.dtos import ErrorType
from compliance_services.gates import INPUT_VALIDATION, GateRequest, InputValidationGate


@pytest.fixture
def gate():
    return InputValidationGate()


def _run(gate, payload):
    return gate.execute(GateRequest(payload=payload))


class TestInputValidationPasses:

    def test_valid_payload(self, gate, payload):
        result = _run(gate, payload)
        assert result.passed
        assert result.gate_name == INPUT_VALIDATION
        assert result.message == "Input validation passed"
        assert result.error_type is None

    def test_decimal_amounts_accepted(self, gate, payload):
        payload["items"][0]["amount"] = Decimal("100.00")
        payload["totalAmount"] = Decimal("100.00")
        assert _run(gate, payload).passed

    def test_sum_within_one_cent(self, gate, payload):
        payload["totalAmount"] = 100.01
        assert _run(gate, payload).passed

    def test_zero_amounts(self, gate, make_payload):
        payload = make_payload(items=[{"id": "i", "category": "FOOD", "amount": 0}])
        assert _run(gate, payload).passed

    def test_largest_amount_accepted(self, gate, make_payload):
        payload = make_payload(items=[
            {"id": "i", "category": "SOFTWARE", "amount": Decimal("999999999999999.99")},
        ], total_amount=Decimal("999999999999999.99"))
        assert _run(gate, payload).passed


class TestInputValidationFailures:

    @pytest.mark.parametrize("mutate, message", [
        (lambda p: p.pop("transactionId"), "transactionId is required and must be a string"),
        (lambda p: p.update(merchantId=42), "merchantId is required and must be a string"),
        (lambda p: p.update(customerId=""), "customerId is required and must be a string"),
        (lambda p: p.pop("destination"), "destination is required"),
        (lambda p: p["destination"].pop("city"), "destination.city is required"),
        (lambda p: p["destination"].update(state=None), "destination.state is required"),
        (lambda p: p.update(items=[]), "items is required and must be a non-empty array"),
        (lambda p: p.update(items="abc"), "items is required and must be a non-empty array"),
        (lambda p: p["items"][0].pop("id"), "Each item must have an id (string)"),
        (lambda p: p["items"][0].update(category=7), "Each item must have a category (string)"),
        (lambda p: p["items"][0].update(amount=-1),
         "Each item must have a non-negative amount (number)"),
        (lambda p: p["items"][0].update(amount="100"),
         "Each item must have a non-negative amount (number)"),
        (lambda p: p["items"][0].update(amount=True),
         "Each item must have a non-negative amount (number)"),
        (lambda p: p.pop("totalAmount"),
         "totalAmount is required and must be a non-negative number"),
        (lambda p: p.pop("currency"), "currency is required and must be a string"),
        (lambda p: p.update(currency="EUR"), "Unsupported currency: EUR. Only USD is supported"),
        (lambda p: p["items"][0].update(amount=1e28),
         "Each item amount must not exceed 999,999,999,999,999.99"),
        (lambda p: p.update(totalAmount=Decimal("1E+16")),
         "totalAmount must not exceed 999,999,999,999,999.99"),
    ])
    def test_violation(self, gate, payload, mutate, message):
        mutate(payload)
        result = _run(gate, payload)
        assert not result.passed
        assert result.message == message
        assert result.error_type == ErrorType.VALIDATION

    def test_payload_not_a_mapping(self, gate):
        result = _run(gate, None)
        assert result.message == "Transaction is required"

    def test_item_not_a_mapping(self, gate, payload):
        payload["items"] = ["item_1"]
        assert _run(gate, payload).message == "Each item must have an id (string)"

    def test_items_sum_mismatch(self, gate, make_payload):
        payload = make_payload(
            items=[
                {"id": "a", "category": "SOFTWARE", "amount": 10.00},
                {"id": "b", "category": "SOFTWARE", "amount": 20.00},
            ],
            total_amount=30.50,
        )
        result = _run(gate, payload)
        assert result.message == "Items sum (30.0) does not match totalAmount (30.5)"

    def test_first_violation_wins(self, gate, payload):
        payload["currency"] = "EUR"
        payload["merchantId"] = None
        assert _run(gate, payload).message == "merchantId is required and must be a string"

    def test_payload_not_mutated(self, gate, payload):
        snapshot = repr(payload)
        _run(gate, payload)
        assert repr(payload) == snapshot
