"""
Module: compliance_kernel.models.transaction_record
Responsibility: ORM persistence for processed transactions and their audit
    trails.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One TransactionRecord per transaction id (unique).  Re-processing the
      same id replaces the stored request/response.
    - AuditTrailRecord rows are append-only; every processing run adds one.

Audit relevance:
    AuditTrailRecord keeps the exact ordered audit lines returned to the
    caller, so every CALCULATED or REJECTED decision can be replayed.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import Base, TimestampedBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionRecord(TimestampedBase):
    """
    Latest processing outcome for one transaction id.

    Contract:
        Holds the request payload and the rendered response exactly as
        returned by ComplianceResponse.to_dict().
    """

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transactions_merchant", "merchant_id"),
        Index("idx_transactions_status", "status"),
    )

    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    merchant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    destination_country: Mapped[str | None] = mapped_column(String(10))
    destination_state: Mapped[str | None] = mapped_column(String(10))
    destination_city: Mapped[str | None] = mapped_column(String(100))

    total_amount: Mapped[Decimal | None]
    currency: Mapped[str | None] = mapped_column(String(3))

    # CALCULATED / REJECTED / FAILED
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    request_payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    response_payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<TransactionRecord {self.transaction_id} {self.status}>"


class AuditTrailRecord(Base):
    """One stored audit trail (append-only)."""

    __tablename__ = "audit_trails"

    __table_args__ = (
        Index("idx_audit_trails_transaction", "transaction_id"),
        Index("idx_audit_trails_recorded", "recorded_at"),
    )

    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)

    entries: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    # Status and gate summary at the time of recording
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditTrailRecord {self.transaction_id} ({len(self.entries)} entries)>"
