"""
Compliance Engines - Pure calculation layer.

Engines take explicit inputs and return immutable results.  They never read
configuration, touch the database or call collaborators other than the
injected RateTable snapshot.

Engines:
    - RateTable: immutable snapshot of jurisdiction rates and category modifiers
    - FeeCalculator: layered per-item fees with exact total reconciliation

Infrastructure:
    - traced_engine: decorator emitting COMPLIANCE_ENGINE_TRACE records
"""

from compliance_engines.fee_calculator import FeeCalculator
from compliance_engines.rate_table import RateTable, jurisdiction_key
from compliance_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "FeeCalculator",
    "RateTable",
    "compute_input_fingerprint",
    "jurisdiction_key",
    "traced_engine",
]
