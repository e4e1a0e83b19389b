"""
compliance_services.transaction_recorder -- SQL persistence of processed transactions.

Responsibility:
    Stores the request, the rendered response and the audit trail of every
    processed transaction, and reads them back for audit queries.

Architecture position:
    Services -- I/O adapter behind the kernel TransactionRecorder interface.
    ComplianceEngine calls ``record`` after the response is built and never
    lets a failure here reach its caller.

Invariants enforced:
    - One ``transactions`` row per transaction id; re-processing replaces
      status, request and response.
    - ``audit_trails`` rows are append-only; each ``record`` adds one.
    - Each call runs in its own short session (commit or rollback).

Failure modes:
    - TransactionRecordError wrapping any SQLAlchemyError.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from compliance_kernel.db.engine import session_scope
from compliance_kernel.domain.dtos import ComplianceResponse
from compliance_kernel.domain.sources import TransactionRecorder
from compliance_kernel.domain.values import is_number, to_decimal
from compliance_kernel.exceptions import TransactionRecordError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.transaction_record import AuditTrailRecord, TransactionRecord

logger = get_logger("services.transaction_recorder")


def _json_safe(payload: Any) -> dict[str, Any]:
    """Request payload as plain JSON types (Decimals become strings)."""
    if not isinstance(payload, Mapping):
        return {"raw": repr(payload)}
    return json.loads(json.dumps(payload, default=str))


def _text(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


class SqlTransactionRecorder(TransactionRecorder):
    """
    Records transactions through a sessionmaker.

    Non-goals:
        - Does not retry failed writes.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def record(self, payload: Mapping[str, Any], response: ComplianceResponse) -> None:
        """
        Upsert the transaction row and append an audit trail row.

        Raises:
            TransactionRecordError: If the database write fails.
        """
        transaction_id = response.transaction_id
        request = _json_safe(payload)
        rendered = response.to_dict()
        fields = self._extract_fields(payload)

        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(
                    select(TransactionRecord).where(
                        TransactionRecord.transaction_id == transaction_id
                    )
                ).scalar_one_or_none()
                if record is None:
                    record = TransactionRecord(transaction_id=transaction_id)
                    session.add(record)

                record.merchant_id = fields["merchant_id"] or ""
                record.customer_id = fields["customer_id"] or ""
                record.destination_country = fields["country"]
                record.destination_state = fields["state"]
                record.destination_city = fields["city"]
                record.total_amount = fields["total_amount"]
                record.currency = fields["currency"]
                record.status = response.status.value
                record.request_payload = request
                record.response_payload = rendered

                session.add(AuditTrailRecord(
                    transaction_id=transaction_id,
                    entries=list(response.audit_trail),
                    metadata_={
                        "status": response.status.value,
                        "gates": [
                            {"name": gate.name, "passed": gate.passed}
                            for gate in response.gates
                        ],
                    },
                ))
        except SQLAlchemyError as e:
            raise TransactionRecordError(transaction_id, str(e)) from e

        logger.info("transaction_recorded", extra={
            "transaction_id": transaction_id,
            "status": response.status.value,
            "audit_entries": len(response.audit_trail),
        })

    def get_response(self, transaction_id: str) -> dict[str, Any] | None:
        """Latest stored response for a transaction id."""
        with self._session_factory() as session:
            record = session.execute(
                select(TransactionRecord).where(
                    TransactionRecord.transaction_id == transaction_id
                )
            ).scalar_one_or_none()
            return dict(record.response_payload) if record is not None else None

    def get_audit_trail(self, transaction_id: str) -> list[str] | None:
        """Most recently recorded audit trail for a transaction id."""
        with self._session_factory() as session:
            row = session.execute(
                select(AuditTrailRecord)
                .where(AuditTrailRecord.transaction_id == transaction_id)
                .order_by(AuditTrailRecord.recorded_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return list(row.entries) if row is not None else None

    def list_audit_trails(self, limit: int = 50) -> list[dict[str, Any]]:
        """Recent audit trails, newest first."""
        with self._session_factory() as session:
            rows = session.execute(
                select(AuditTrailRecord)
                .order_by(AuditTrailRecord.recorded_at.desc())
                .limit(limit)
            ).scalars()
            return [
                {
                    "transactionId": row.transaction_id,
                    "entries": list(row.entries),
                    "metadata": dict(row.metadata_ or {}),
                    "recordedAt": row.recorded_at.isoformat(),
                }
                for row in rows
            ]

    @staticmethod
    def _extract_fields(payload: Any) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "merchant_id": None,
            "customer_id": None,
            "country": None,
            "state": None,
            "city": None,
            "total_amount": None,
            "currency": None,
        }
        if not isinstance(payload, Mapping):
            return fields

        fields["merchant_id"] = _text(payload, "merchantId")
        fields["customer_id"] = _text(payload, "customerId")
        fields["currency"] = _text(payload, "currency")
        destination = payload.get("destination")
        if isinstance(destination, Mapping):
            fields["country"] = _text(destination, "country")
            fields["state"] = _text(destination, "state")
            fields["city"] = _text(destination, "city")
        total = payload.get("totalAmount")
        if is_number(total):
            fields["total_amount"] = to_decimal(total)
        return fields
