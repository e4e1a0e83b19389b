"""
Applicability gate -- merchant economic-nexus threshold check.

Passes iff the merchant's volume in the destination state meets the
threshold.  Unknown merchant/state pairs have volume 0 and always fail.
"""

from __future__ import annotations

from compliance_kernel.domain.dtos import ErrorType, GateResult
from compliance_kernel.domain.sources import MerchantVolumeSource
from compliance_kernel.domain.values import format_amount
from compliance_kernel.exceptions import SourceUnavailableError
from compliance_kernel.logging_config import get_logger
from compliance_services.gates.base import BaseGate, GateRequest

logger = get_logger("services.gates.applicability")

APPLICABILITY = "Applicability"


class ApplicabilityGate(BaseGate):
    """Checks merchant volume against the per-state threshold."""

    name = APPLICABILITY

    def __init__(self, volumes: MerchantVolumeSource):
        self._volumes = volumes

    def execute(self, request: GateRequest) -> GateResult:
        transaction = request.transaction
        merchant_id = transaction.merchant_id
        state = transaction.destination.state

        try:
            volume = self._volumes.get_volume(merchant_id, state)
            threshold = self._volumes.get_threshold(merchant_id, state)
        except SourceUnavailableError as e:
            logger.warning("merchant_volume_unavailable", extra={
                "merchant_id": merchant_id, "state": state,
            }, exc_info=True)
            return self._fail(
                f"Merchant volume service unavailable: {e.reason}",
                ErrorType.DEPENDENCY,
                merchantId=merchant_id,
                state=state,
                error=e.reason,
            )

        metadata = {
            "merchantId": merchant_id,
            "state": state,
            "volume": volume,
            "threshold": threshold,
        }
        if volume >= threshold:
            return self._pass(
                f"Merchant above ${format_amount(threshold)} threshold in {state}",
                **metadata,
            )
        return self._fail(
            f"Merchant volume (${format_amount(volume)}) below threshold "
            f"(${format_amount(threshold)}) in {state}",
            ErrorType.VALIDATION,
            **metadata,
        )
