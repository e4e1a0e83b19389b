"""
Compliance Services - Stateful orchestration over engines and the kernel.

Services:
    - ComplianceEngine: gate chain + fee calculator, public response mapping
    - GateOrchestrator: sequential gate execution with short-circuit
    - SqlJurisdictionLookup: database-backed jurisdiction lookup
    - SqlTransactionRecorder: persistence of processed transactions
"""

from compliance_services.compliance_engine import ComplianceEngine
from compliance_services.gate_orchestrator import GateExecution, GateOrchestrator
from compliance_services.jurisdiction_lookup import (
    SqlJurisdictionLookup,
    seed_from_factory,
    seed_jurisdictions,
)
from compliance_services.transaction_recorder import SqlTransactionRecorder

__all__ = [
    "ComplianceEngine",
    "GateExecution",
    "GateOrchestrator",
    "SqlJurisdictionLookup",
    "SqlTransactionRecorder",
    "seed_from_factory",
    "seed_jurisdictions",
]
