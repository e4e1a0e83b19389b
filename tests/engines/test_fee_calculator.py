"""
Tests for FeeCalculator.

Covers:
- Layered per-item fees for every configured jurisdiction shape
- Customer and item exemptions
- Reconciliation of the per-item sum with the total
- Effective rate and audit lines
- COMPLIANCE_ENGINE_TRACE emission
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from compliance_engines.fee_calculator import FeeCalculator
from compliance_kernel.domain.dtos import ExemptionData, FeeComponent, ItemFeeCalculation
from compliance_kernel.domain.transaction import Transaction
from compliance_kernel.exceptions import ExemptionDataMissingError, ReconciliationError


@pytest.fixture
def calculator(rate_table):
    return FeeCalculator(rate_table)


def _txn(make_payload, **kwargs) -> Transaction:
    return Transaction.from_payload(make_payload(**kwargs))


class TestLayeredFees:
    """Per-item component layering."""

    def test_los_angeles_software(self, calculator, payload):
        result = calculator.calculate_fees(Transaction.from_payload(payload), ExemptionData())

        item = result.items[0]
        assert item.state_rate.amount == Decimal("6.00")
        assert item.county_rate.amount == Decimal("0.25")
        assert item.county_rate.jurisdiction == "Los Angeles County"
        assert item.city_rate.amount == Decimal("2.25")
        assert item.city_rate.jurisdiction == "Los Angeles"
        assert item.category_modifier.amount == Decimal("1.00")
        assert item.total_fee == Decimal("9.50")
        assert result.total_fees == Decimal("9.50")
        assert result.effective_rate == Decimal("0.0950")

    def test_audit_lines_for_applied_rates(self, calculator, payload):
        result = calculator.calculate_fees(Transaction.from_payload(payload), ExemptionData())
        assert result.audit_trail == (
            "Applied CA state rate: 6.00%",
            "Applied Los Angeles County county rate: 0.25%",
            "Applied Los Angeles city rate: 2.25%",
            "Applied SOFTWARE category modifier: 1.00%",
        )

    def test_city_without_overrides_has_state_and_category_only(self, calculator, make_payload):
        result = calculator.calculate_fees(
            _txn(make_payload, city="San Diego"), ExemptionData(),
        )
        item = result.items[0]
        assert item.county_rate is None
        assert item.city_rate is None
        assert item.total_fee == Decimal("7.00")
        assert [key for key, _ in item.components()] == ["stateRate", "categoryModifier"]

    def test_city_without_county_has_no_county_fee(self, calculator, make_payload):
        result = calculator.calculate_fees(
            _txn(make_payload, state="NY", city="New York City", merchant_id="merchant_789"),
            ExemptionData(),
        )
        item = result.items[0]
        assert item.state_rate.amount == Decimal("4.00")
        assert item.county_rate is None
        assert item.city_rate.amount == Decimal("1.00")
        assert item.total_fee == Decimal("6.00")
        assert [key for key, _ in item.components()] == [
            "stateRate", "cityRate", "categoryModifier",
        ]

    def test_new_york_physical_goods(self, calculator, make_payload):
        result = calculator.calculate_fees(
            _txn(
                make_payload, state="NY", city="New York City", merchant_id="merchant_789",
                items=[{"id": "item_1", "category": "PHYSICAL_GOODS", "amount": 100.00}],
            ),
            ExemptionData(),
        )
        item = result.items[0]
        assert item.county_rate is None
        assert result.total_fees == Decimal("5.00")
        assert not any("county rate" in line for line in result.audit_trail)

    def test_zero_rates_produce_no_audit_lines(self, calculator, make_payload):
        items = [{"id": "item_1", "category": "PHYSICAL_GOODS", "amount": 50.00}]
        result = calculator.calculate_fees(
            _txn(make_payload, state="TX", city="Austin", items=items), ExemptionData(),
        )
        assert result.total_fees == Decimal("0.00")
        assert result.audit_trail == ()
        assert result.items[0].state_rate.rate == Decimal("0.0")

    def test_unknown_category_has_zero_modifier(self, calculator, make_payload):
        items = [{"id": "item_1", "category": "JEWELRY", "amount": 10.00}]
        result = calculator.calculate_fees(_txn(make_payload, items=items), ExemptionData())
        assert result.items[0].category_modifier.rate == Decimal("0")
        assert result.items[0].category_modifier.category == "JEWELRY"

    def test_components_rounded_half_up_before_summing(self, calculator, make_payload):
        items = [{"id": "item_1", "category": "SOFTWARE", "amount": 0.25}]
        result = calculator.calculate_fees(
            _txn(make_payload, city="San Diego", items=items), ExemptionData(),
        )
        item = result.items[0]
        # 0.06 * 0.25 = 0.015 -> 0.02; 0.01 * 0.25 = 0.0025 -> 0.00
        assert item.state_rate.amount == Decimal("0.02")
        assert item.category_modifier.amount == Decimal("0.00")
        assert item.total_fee == Decimal("0.02")


class TestExemptions:

    def test_customer_exemption_zeroes_every_item(self, calculator, payload):
        result = calculator.calculate_fees(
            Transaction.from_payload(payload),
            ExemptionData(customer_exemptions=("WHOLESALE",)),
        )
        item = result.items[0]
        assert item.total_fee == Decimal("0")
        assert item.state_rate == FeeComponent(Decimal("0"), Decimal("0"), jurisdiction="CA")
        assert item.county_rate is None
        assert item.city_rate is None
        assert result.total_fees == Decimal("0.00")
        assert result.effective_rate == Decimal("0")
        assert result.audit_trail == ("Item item_1 (SOFTWARE) exempt - no fees applied",)

    def test_item_exemption_only_affects_that_item(self, calculator, make_payload):
        items = [
            {"id": "item_1", "category": "SOFTWARE", "amount": 100.00},
            {"id": "item_2", "category": "FOOD", "amount": 50.00},
        ]
        result = calculator.calculate_fees(
            _txn(make_payload, items=items),
            ExemptionData(item_exemptions={"item_2": ("FOOD exempt in CA",)}),
        )
        assert result.items[0].total_fee == Decimal("9.50")
        assert result.items[1].total_fee == Decimal("0")
        assert result.total_fees == Decimal("9.50")
        assert result.effective_rate == Decimal("0.0633")
        assert "Item item_2 (FOOD) exempt - no fees applied" in result.audit_trail

    def test_missing_exemption_data_raises(self, calculator, payload):
        with pytest.raises(ExemptionDataMissingError) as exc_info:
            calculator.calculate_fees(Transaction.from_payload(payload), None)
        assert exc_info.value.transaction_id == "txn_001"


class TestReconciliation:
    """Per-item sum equals the total within one cent."""

    def test_many_items_reconcile(self, calculator, make_payload):
        items = [
            {"id": f"item_{i}", "category": "SOFTWARE", "amount": 0.33}
            for i in range(47)
        ]
        result = calculator.calculate_fees(_txn(make_payload, items=items), ExemptionData())
        assert len(result.items) == 47
        assert abs(result.item_fee_sum - result.total_fees) <= Decimal("0.01")

    def test_zero_total_amount_has_zero_effective_rate(self, calculator, make_payload):
        items = [{"id": "item_1", "category": "SOFTWARE", "amount": 0}]
        result = calculator.calculate_fees(_txn(make_payload, items=items), ExemptionData())
        assert result.total_fees == Decimal("0.00")
        assert result.effective_rate == Decimal("0")

    def test_residual_pushed_onto_last_item(self, captured_logs):
        component = FeeComponent(Decimal("0"), Decimal("0"), jurisdiction="CA")
        items = [
            ItemFeeCalculation("a", Decimal("1"), "X", component, component, Decimal("1.00")),
            ItemFeeCalculation("b", Decimal("1"), "X", component, component, Decimal("2.00")),
        ]
        reconciled = FeeCalculator._reconcile("t", items, Decimal("3.05"))
        assert reconciled[0].total_fee == Decimal("1.00")
        assert reconciled[1].total_fee == Decimal("2.05")
        assert any(r["message"] == "fee_reconciliation_adjusted" for r in captured_logs())

    def test_unreconcilable_raises(self):
        with pytest.raises(ReconciliationError) as exc_info:
            FeeCalculator._reconcile("t", [], Decimal("1.00"))
        assert exc_info.value.code == "RECONCILIATION_FAILED"


class TestDeterminismAndTrace:

    def test_same_input_same_result(self, calculator, payload):
        txn = Transaction.from_payload(payload)
        first = calculator.calculate_fees(txn, ExemptionData())
        second = calculator.calculate_fees(txn, ExemptionData())
        assert first == second

    def test_trace_record_emitted(self, calculator, payload, captured_logs):
        txn = Transaction.from_payload(payload)
        calculator.calculate_fees(txn, ExemptionData())
        calculator.calculate_fees(txn, ExemptionData())

        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert len(traces) == 2
        assert traces[0]["engine_name"] == "fee_calculator"
        assert traces[0]["engine_version"] == "1.0"
        assert len(traces[0]["input_fingerprint"]) == 16
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_fingerprint_changes_with_exemptions(self, calculator, payload, captured_logs):
        txn = Transaction.from_payload(payload)
        calculator.calculate_fees(txn, ExemptionData())
        calculator.calculate_fees(txn, ExemptionData(customer_exemptions=("WHOLESALE",)))

        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] != traces[1]["input_fingerprint"]
