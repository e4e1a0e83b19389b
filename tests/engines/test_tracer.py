"""Tests for the engine tracer decorator and input fingerprints."""

from decimal import Decimal

import pytest

from compliance_engines.tracer import compute_input_fingerprint, traced_engine
from compliance_kernel.domain.dtos import ExemptionData


class TestComputeInputFingerprint:

    def test_deterministic(self):
        args = {"amount": Decimal("10.00"), "state": "CA"}
        assert compute_input_fingerprint(("amount", "state"), args) == \
            compute_input_fingerprint(("amount", "state"), args)

    def test_mapping_order_irrelevant(self):
        a = {"rules": {"x": 1, "y": 2}}
        b = {"rules": {"y": 2, "x": 1}}
        assert compute_input_fingerprint(("rules",), a) == compute_input_fingerprint(("rules",), b)

    def test_only_selected_fields(self):
        a = {"amount": 1, "noise": "a"}
        b = {"amount": 1, "noise": "b"}
        assert compute_input_fingerprint(("amount",), a) == compute_input_fingerprint(("amount",), b)

    def test_dataclass_content_matters(self):
        a = {"data": ExemptionData()}
        b = {"data": ExemptionData(customer_exemptions=("WHOLESALE",))}
        assert compute_input_fingerprint(("data",), a) != compute_input_fingerprint(("data",), b)

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})


class TestTracedEngine:

    def test_keyword_and_positional_calls_match(self, captured_logs):
        @traced_engine("adder", "2.0", fingerprint_fields=("a", "b"))
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert add(a=1, b=2) == 3

        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert len(traces) == 2
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
        assert traces[0]["engine_version"] == "2.0"
        assert traces[0]["function"].endswith("add")

    def test_exception_propagates_without_trace(self, captured_logs):
        @traced_engine("broken", "1.0")
        def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            broken()
        assert not [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
