"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHEN EXCEPTIONS ARE RAISED
===============================================================================

Gates never raise for expected conditions. A malformed transaction, an
unsupported destination, or a merchant below threshold is reported as a
failed GateResult carrying an ErrorType (VALIDATION, DEPENDENCY, SYSTEM).

Exceptions are reserved for the seams where a caller cannot continue:
  - a collaborator is unreachable (SourceError)
  - the fee arithmetic breaks its own invariant (CalculationError)
  - the rule set on disk is unusable (ConfigurationError)
  - the recorder cannot store a processed transaction (PersistenceError)

Every exception carries a class-level CODE and its context as attributes,
so log records and API layers never parse message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- TransactionPayloadError
    |
    +-- SourceError
    |   +-- SourceUnavailableError
    |   +-- LookupTimeoutError
    |
    +-- CalculationError
    |   +-- ReconciliationError
    |   +-- ExemptionDataMissingError
    |
    +-- ConfigurationError
    |   +-- RuleSetValidationError
    |
    +-- PersistenceError
        +-- TransactionRecordError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|-----------------------------------------
Payload         | TRANSACTION_PAYLOAD_INVALID  | Parsing a payload that skipped validation
----------------|------------------------------|-----------------------------------------
Source          | SOURCE_UNAVAILABLE           | Collaborator raised or is unreachable
                | LOOKUP_TIMEOUT               | Remote lookup exceeded its time budget
----------------|------------------------------|-----------------------------------------
Calculation     | RECONCILIATION_FAILED        | Item fees do not sum to the total
                | EXEMPTION_DATA_MISSING       | Exemption gate produced no data
----------------|------------------------------|-----------------------------------------
Configuration   | RULE_SET_INVALID             | YAML rule set failed validation
----------------|------------------------------|-----------------------------------------
Persistence     | TRANSACTION_RECORD_FAILED    | Recorder could not store a transaction
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Payload exceptions


class TransactionPayloadError(ComplianceKernelError):
    """A transaction payload could not be parsed into domain values."""

    code: str = "TRANSACTION_PAYLOAD_INVALID"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid transaction payload field {field}: {reason}")


# Collaborator exceptions


class SourceError(ComplianceKernelError):
    """Base exception for collaborator (lookup/source) errors."""

    code: str = "SOURCE_ERROR"


class SourceUnavailableError(SourceError):
    """A read-only collaborator could not answer."""

    code: str = "SOURCE_UNAVAILABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}")


class LookupTimeoutError(SourceError):
    """A remote lookup did not answer within its time budget."""

    code: str = "LOOKUP_TIMEOUT"

    def __init__(self, source: str, timeout_seconds: float):
        self.source = source
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{source} timed out after {timeout_seconds:g}s"
        )


# Calculation exceptions


class CalculationError(ComplianceKernelError):
    """Base exception for fee calculation errors."""

    code: str = "CALCULATION_ERROR"


class ReconciliationError(CalculationError):
    """
    Item fees do not sum to the reported total after reconciliation.

    This indicates a defect in the calculator, never bad input.
    """

    code: str = "RECONCILIATION_FAILED"

    def __init__(self, transaction_id: str, item_sum: str, total: str):
        self.transaction_id = transaction_id
        self.item_sum = item_sum
        self.total = total
        super().__init__(
            f"Fee reconciliation failed for {transaction_id}: "
            f"items sum to {item_sum}, total is {total}"
        )


class ExemptionDataMissingError(CalculationError):
    """The exemption gate passed without producing exemption data."""

    code: str = "EXEMPTION_DATA_MISSING"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"No exemption data produced for {transaction_id}")


# Configuration exceptions


class ConfigurationError(ComplianceKernelError):
    """Base exception for rule set configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class RuleSetValidationError(ConfigurationError):
    """The rule set failed structural or semantic validation."""

    code: str = "RULE_SET_INVALID"

    def __init__(self, source: str, errors: list[str]):
        self.source = source
        self.errors = errors
        super().__init__(
            f"Rule set {source} is invalid: {len(errors)} error(s): "
            + "; ".join(errors)
        )


# Persistence exceptions


class PersistenceError(ComplianceKernelError):
    """Base exception for persistence errors."""

    code: str = "PERSISTENCE_ERROR"


class TransactionRecordError(PersistenceError):
    """A processed transaction could not be stored."""

    code: str = "TRANSACTION_RECORD_FAILED"

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(
            f"Could not record transaction {transaction_id}: {reason}"
        )
