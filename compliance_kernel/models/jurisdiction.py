"""
Module: compliance_kernel.models.jurisdiction
Responsibility: ORM persistence for supported jurisdictions, backing the
    SQL implementation of JurisdictionLookup.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A row with city = NULL marks the state itself as supported.
    - (state, city) is unique.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import TimestampedBase


class JurisdictionRecord(TimestampedBase):
    """A state (city is NULL) or a city within a state."""

    __tablename__ = "jurisdictions"

    __table_args__ = (
        UniqueConstraint("state", "city", name="uq_jurisdiction_state_city"),
    )

    state: Mapped[str] = mapped_column(String(10), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_supported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        where = f"{self.city}, {self.state}" if self.city else self.state
        return f"<JurisdictionRecord {where} supported={self.is_supported}>"
