"""Pure domain layer: values, transaction, DTOs and collaborator interfaces."""

from compliance_kernel.domain.dtos import (
    CalculationResult,
    ComplianceResponse,
    ErrorType,
    ExemptionData,
    FallbackPolicy,
    FeeComponent,
    GateEntry,
    GateResult,
    ItemFeeCalculation,
    TransactionStatus,
)
from compliance_kernel.domain.sources import (
    ExemptionRuleSource,
    JurisdictionLookup,
    MerchantVolumeSource,
    RateSource,
    TransactionRecorder,
)
from compliance_kernel.domain.transaction import Destination, LineItem, Transaction

__all__ = [
    "CalculationResult",
    "ComplianceResponse",
    "Destination",
    "ErrorType",
    "ExemptionData",
    "ExemptionRuleSource",
    "FallbackPolicy",
    "FeeComponent",
    "GateEntry",
    "GateResult",
    "ItemFeeCalculation",
    "JurisdictionLookup",
    "LineItem",
    "MerchantVolumeSource",
    "RateSource",
    "Transaction",
    "TransactionRecorder",
    "TransactionStatus",
]
