"""
compliance_services.jurisdiction_lookup -- Database-backed JurisdictionLookup.

Responsibility:
    Answers "is this state/city supported" from the ``jurisdictions`` table,
    one short session per call, and seeds that table from a rule set.

Architecture position:
    Services -- I/O adapter behind the kernel JurisdictionLookup interface.
    The AddressValidation gate treats it as the unreliable remote lookup and
    bounds it with a timeout.

Failure modes:
    - SourceUnavailableError when the database raises (connection refused,
      missing table, ...).  The gate maps this to its fallback policy.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from compliance_config.schema import ComplianceRuleSet
from compliance_kernel.db.engine import session_scope
from compliance_kernel.domain.sources import JurisdictionLookup
from compliance_kernel.exceptions import SourceUnavailableError
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.jurisdiction import JurisdictionRecord

logger = get_logger("services.jurisdiction_lookup")

_SOURCE = "jurisdiction_db"


class SqlJurisdictionLookup(JurisdictionLookup):
    """
    JurisdictionLookup over the ``jurisdictions`` table.

    Guarantees:
        - A state is supported iff it has at least one supported row.
        - A city is supported iff a supported (state, city) row exists.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def is_state_supported(self, state: str) -> bool:
        stmt = (
            select(func.count())
            .select_from(JurisdictionRecord)
            .where(
                JurisdictionRecord.state == state,
                JurisdictionRecord.is_supported.is_(True),
            )
        )
        return self._count(stmt) > 0

    def is_city_supported(self, state: str, city: str) -> bool:
        stmt = (
            select(func.count())
            .select_from(JurisdictionRecord)
            .where(
                JurisdictionRecord.state == state,
                JurisdictionRecord.city == city,
                JurisdictionRecord.is_supported.is_(True),
            )
        )
        return self._count(stmt) > 0

    def _count(self, stmt) -> int:
        try:
            with self._session_factory() as session:
                return session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.warning("jurisdiction_query_failed", exc_info=True)
            raise SourceUnavailableError(_SOURCE, str(e)) from e


def seed_jurisdictions(session: Session, rules: ComplianceRuleSet) -> int:
    """
    Insert the rule set's supported states and cities.

    Existing (state, city) rows are left untouched.  Flushes but does not
    commit; the caller owns the transaction.

    Returns:
        Number of rows inserted.
    """
    existing = {
        (row.state, row.city)
        for row in session.execute(select(JurisdictionRecord)).scalars()
    }

    inserted = 0
    for state in rules.states:
        wanted = [(state.code, None)] + [(state.code, name) for name in state.city_names]
        for key in wanted:
            if key in existing:
                continue
            session.add(JurisdictionRecord(state=key[0], city=key[1], is_supported=True))
            existing.add(key)
            inserted += 1

    session.flush()
    logger.info("jurisdictions_seeded", extra={
        "rule_set": rules.name,
        "inserted": inserted,
    })
    return inserted


def seed_from_factory(session_factory: sessionmaker[Session], rules: ComplianceRuleSet) -> int:
    """Seed in its own committed transaction."""
    with session_scope(session_factory) as session:
        return seed_jurisdictions(session, rules)
