"""
Sources -- read-only collaborator interfaces consumed by the pipeline.

Responsibility:
    Declares the abstract lookups the gates and the rate table depend on.
    Concrete implementations live outside the kernel: static ones built from
    the YAML rule set (compliance_config.bridges) and database-backed ones
    (compliance_services).

Architecture position:
    Kernel > Domain -- pure interfaces, zero I/O.

Failure modes:
    - Any method may raise SourceUnavailableError.  JurisdictionLookup
      implementations may also block; callers bound them with a timeout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from compliance_kernel.domain.dtos import ComplianceResponse


class RateSource(ABC):
    """
    Provider of jurisdiction rates and category modifiers.

    Contract:
        Consumed exactly once, at process start, to build a RateTable.
        ``jurisdictions()`` and ``categories()`` enumerate the universe that
        the snapshot must cover.
    """

    @abstractmethod
    def get_state_rate(self, state: str) -> Decimal:
        """State rate; Decimal("0") for a state with no configured rate."""
        ...

    @abstractmethod
    def get_county_rate(self, state: str, city: str | None = None) -> Decimal | None:
        """
        County rate for ``state:city``; None when the city has no county.

        With ``city`` None a source may report a state-level figure, but
        fees only ever use the per-city rate.
        """
        ...

    @abstractmethod
    def get_city_rate(self, state: str, city: str) -> Decimal | None:
        ...

    @abstractmethod
    def get_category_modifier(self, category: str) -> Decimal:
        ...

    @abstractmethod
    def get_county_name(self, state: str, city: str | None = None) -> str | None:
        """Configured county label, or None to fall back to ``<city> County``."""
        ...

    @abstractmethod
    def jurisdictions(self) -> Mapping[str, tuple[str, ...]]:
        """State code -> cities with rate data."""
        ...

    @abstractmethod
    def categories(self) -> tuple[str, ...]:
        ...


class JurisdictionLookup(ABC):
    """
    Answers whether a destination is a supported jurisdiction.

    Contract:
        Treated as remote and unreliable: may raise or block.
    """

    @abstractmethod
    def is_state_supported(self, state: str) -> bool:
        ...

    @abstractmethod
    def is_city_supported(self, state: str, city: str) -> bool:
        ...


class MerchantVolumeSource(ABC):
    """Per-merchant, per-state sales volume and economic-nexus threshold."""

    @abstractmethod
    def get_volume(self, merchant_id: str, state: str) -> Decimal:
        """Volume for the pair; Decimal("0") when unknown."""
        ...

    @abstractmethod
    def get_threshold(self, merchant_id: str, state: str) -> Decimal:
        ...


class ExemptionRuleSource(ABC):
    """Exempt customer types and exempt (category, state) pairs."""

    @abstractmethod
    def exempt_customer_types(self) -> frozenset[str]:
        ...

    @abstractmethod
    def exempt_item_rules(self) -> frozenset[tuple[str, str]]:
        ...


class TransactionRecorder(ABC):
    """
    Sink for processed transactions.

    Contract:
        Called after the response is built.  Failures are the caller's to
        log; they never alter the response.
    """

    @abstractmethod
    def record(self, payload: Mapping[str, Any], response: ComplianceResponse) -> None:
        ...
