"""SQLAlchemy ORM models for the compliance kernel."""

from compliance_kernel.models.jurisdiction import JurisdictionRecord
from compliance_kernel.models.transaction_record import (
    AuditTrailRecord,
    TransactionRecord,
)

__all__ = [
    "AuditTrailRecord",
    "JurisdictionRecord",
    "TransactionRecord",
]
