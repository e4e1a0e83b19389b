"""
Tests for SqlTransactionRecorder against in-memory SQLite.

Covers:
- Upsert of the transaction row, append-only audit trail rows
- Read-back helpers
- Wiring through ComplianceEngine
- Error wrapping
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from compliance_kernel.exceptions import TransactionRecordError
from compliance_kernel.models import AuditTrailRecord, TransactionRecord
from compliance_services.compliance_engine import ComplianceEngine
from compliance_services.transaction_recorder import SqlTransactionRecorder


@pytest.fixture
def recorder(session_factory):
    return SqlTransactionRecorder(session_factory)


@pytest.fixture
def recording_engine(rules, recorder):
    with ComplianceEngine.from_rules(rules, recorder=recorder) as engine:
        yield engine


def _count(session_factory, model) -> int:
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestRecord:

    def test_calculated_transaction_stored(self, recording_engine, recorder, session_factory, payload):
        response = recording_engine.process(payload)

        with session_factory() as session:
            row = session.execute(select(TransactionRecord)).scalar_one()
            assert row.transaction_id == "txn_001"
            assert row.merchant_id == "merchant_456"
            assert row.destination_state == "CA"
            assert row.destination_city == "Los Angeles"
            assert row.total_amount == Decimal("100")
            assert row.status == "CALCULATED"
            assert row.request_payload["currency"] == "USD"

        assert recorder.get_response("txn_001") == response.to_dict()
        assert recorder.get_audit_trail("txn_001") == list(response.audit_trail)

    def test_rejected_transaction_stored(self, recording_engine, recorder, make_payload):
        recording_engine.process(make_payload(city="Fresno"))
        stored = recorder.get_response("txn_001")
        assert stored["status"] == "REJECTED"
        assert "calculation" not in stored

    def test_reprocessing_upserts_and_appends(self, recording_engine, session_factory, payload):
        recording_engine.process(payload)
        recording_engine.process(payload)

        assert _count(session_factory, TransactionRecord) == 1
        assert _count(session_factory, AuditTrailRecord) == 2

    def test_invalid_payload_still_recorded(self, recording_engine, session_factory, payload):
        payload["totalAmount"] = "not a number"
        recording_engine.process(payload)
        with session_factory() as session:
            row = session.execute(select(TransactionRecord)).scalar_one()
            assert row.status == "REJECTED"
            assert row.total_amount is None

    def test_decimal_payload_serialized(self, recorder, session_factory, make_payload):
        payload = make_payload(
            items=[{"id": "i", "category": "SOFTWARE", "amount": Decimal("10.10")}],
            total_amount=Decimal("10.10"),
        )
        response = ComplianceEngine.failed_response("txn_001", "boom")
        recorder.record(payload, response)

        with session_factory() as session:
            row = session.execute(select(TransactionRecord)).scalar_one()
            assert row.request_payload["totalAmount"] == "10.10"
            assert row.status == "FAILED"

    def test_record_logged(self, recorder, captured_logs):
        recorder.record({}, ComplianceEngine.failed_response("txn_x", "boom"))
        recorded = [r for r in captured_logs() if r["message"] == "transaction_recorded"]
        assert recorded[0]["status"] == "FAILED"
        assert recorded[0]["audit_entries"] == 1


class TestReadBack:

    def test_unknown_transaction(self, recorder):
        assert recorder.get_response("missing") is None
        assert recorder.get_audit_trail("missing") is None

    def test_list_audit_trails(self, recording_engine, recorder, payload, make_payload):
        recording_engine.process(payload)
        recording_engine.process(make_payload(transaction_id="txn_002", city="Fresno"))

        trails = recorder.list_audit_trails()
        assert {t["transactionId"] for t in trails} == {"txn_001", "txn_002"}
        by_id = {t["transactionId"]: t for t in trails}
        assert by_id["txn_002"]["metadata"]["status"] == "REJECTED"
        assert by_id["txn_001"]["metadata"]["gates"] == [
            {"name": "ADDRESS_VALIDATION", "passed": True},
            {"name": "APPLICABILITY", "passed": True},
            {"name": "EXEMPTION_CHECK", "passed": True},
        ]

    def test_list_limit(self, recording_engine, recorder, make_payload):
        for i in range(3):
            recording_engine.process(make_payload(transaction_id=f"txn_{i}"))
        assert len(recorder.list_audit_trails(limit=2)) == 2


class TestRecordFailure:

    def test_database_error_wrapped(self, recorder, db_engine):
        with db_engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE audit_trails")
        with pytest.raises(TransactionRecordError) as exc_info:
            recorder.record({}, ComplianceEngine.failed_response("txn_1", "boom"))
        assert exc_info.value.transaction_id == "txn_1"
        assert isinstance(exc_info.value.__cause__, OperationalError)
