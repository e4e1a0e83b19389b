"""Tests for the Applicability (merchant threshold) gate."""

from decimal import Decimal

import pytest

from compliance_kernel.domain.dtos import ErrorType
from compliance_kernel.domain.sources import MerchantVolumeSource
from compliance_kernel.exceptions import SourceUnavailableError
from compliance_services.gates import APPLICABILITY, ApplicabilityGate, GateRequest


class FixedVolumes(MerchantVolumeSource):

    def __init__(self, volume, threshold=Decimal("100000")):
        self.volume = Decimal(volume)
        self.threshold = Decimal(threshold)

    def get_volume(self, merchant_id, state):
        return self.volume

    def get_threshold(self, merchant_id, state):
        return self.threshold


class DownVolumes(MerchantVolumeSource):

    def get_volume(self, merchant_id, state):
        raise SourceUnavailableError("merchant_volumes", "timeout talking to billing")

    def get_threshold(self, merchant_id, state):
        return Decimal("100000")


def _run(gate, payload):
    return gate.execute(GateRequest(payload=payload))


class TestApplicabilityGate:

    def test_merchant_above_threshold(self, volumes, payload):
        result = _run(ApplicabilityGate(volumes), payload)
        assert result.passed
        assert result.gate_name == APPLICABILITY
        assert result.message == "Merchant above $100,000 threshold in CA"
        assert result.metadata["volume"] == Decimal("2300000")

    def test_merchant_below_threshold(self, volumes, make_payload):
        payload = make_payload(
            merchant_id="merchant_789", state="NY", city="New York City",
        )
        result = _run(ApplicabilityGate(volumes), payload)
        assert not result.passed
        assert result.error_type == ErrorType.VALIDATION
        assert result.message == "Merchant volume ($50,000) below threshold ($100,000) in NY"

    def test_unknown_merchant_state_pair_has_zero_volume(self, volumes, make_payload):
        result = _run(ApplicabilityGate(volumes), make_payload(state="TX", city="Austin"))
        assert not result.passed
        assert result.message == "Merchant volume ($0) below threshold ($100,000) in TX"

    @pytest.mark.parametrize("volume, passed", [
        ("99999.99", False),
        ("100000", True),
        ("100000.01", True),
    ])
    def test_threshold_boundary(self, payload, volume, passed):
        result = _run(ApplicabilityGate(FixedVolumes(volume)), payload)
        assert result.passed is passed

    def test_fractional_volume_formatting(self, payload):
        result = _run(ApplicabilityGate(FixedVolumes("1234.5", "5000")), payload)
        assert result.message == "Merchant volume ($1,234.5) below threshold ($5,000) in CA"

    def test_volume_source_unavailable(self, payload, captured_logs):
        result = _run(ApplicabilityGate(DownVolumes()), payload)
        assert not result.passed
        assert result.error_type == ErrorType.DEPENDENCY
        assert result.message == "Merchant volume service unavailable: timeout talking to billing"
        assert any(r["message"] == "merchant_volume_unavailable" for r in captured_logs())
