"""
Pytest fixtures for the compliance fee engine test suite.

Provides:
- Structured logging setup and log capture
- The bundled rule set, rate table and static collaborators
- Transaction payload factories
- In-memory SQLite session factories for persistence tests
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from compliance_config import get_active_rules
from compliance_config.bridges import (
    StaticExemptionRuleSource,
    StaticJurisdictionLookup,
    StaticMerchantVolumeSource,
    build_rate_table,
)
from compliance_kernel.db.base import Base
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_services.compliance_engine import ComplianceEngine
import compliance_kernel.models  # noqa: F401  registers tables on Base.metadata


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.process(payload)
            logs = captured_logs()
            assert any(r["message"] == "transaction_processed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Rule set fixtures
# =============================================================================


@pytest.fixture(scope="session")
def rules():
    """The bundled default rule set."""
    return get_active_rules()


@pytest.fixture(scope="session")
def rate_table(rules):
    return build_rate_table(rules)


@pytest.fixture
def static_lookup(rules):
    return StaticJurisdictionLookup(rules)


@pytest.fixture
def volumes(rules):
    return StaticMerchantVolumeSource(rules)


@pytest.fixture
def exemption_rules(rules):
    return StaticExemptionRuleSource(rules)


@pytest.fixture
def engine(rules):
    """ComplianceEngine wired from the default rule set."""
    with ComplianceEngine.from_rules(rules) as compliance_engine:
        yield compliance_engine


# =============================================================================
# Payload fixtures
# =============================================================================


def build_payload(
    *,
    transaction_id: str = "txn_001",
    merchant_id: str = "merchant_456",
    customer_id: str = "customer_123",
    country: str = "US",
    state: str = "CA",
    city: str = "Los Angeles",
    items: list[dict] | None = None,
    total_amount=None,
    currency: str = "USD",
) -> dict:
    """Build a wire payload; totalAmount defaults to the item sum."""
    if items is None:
        items = [{"id": "item_1", "category": "SOFTWARE", "amount": 100.00}]
    if total_amount is None:
        total_amount = float(sum(Decimal(str(item["amount"])) for item in items))
    return {
        "transactionId": transaction_id,
        "merchantId": merchant_id,
        "customerId": customer_id,
        "destination": {"country": country, "state": state, "city": city},
        "items": items,
        "totalAmount": total_amount,
        "currency": currency,
    }


@pytest.fixture
def make_payload():
    """Factory fixture for transaction payloads (see build_payload)."""
    return build_payload


@pytest.fixture
def payload():
    """Scenario A: one SOFTWARE item shipped to Los Angeles, CA."""
    return build_payload()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.rollback()
    s.close()
