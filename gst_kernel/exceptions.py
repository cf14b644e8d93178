"""
Typed Exception Hierarchy for the GST settlement engine.

===============================================================================
TYPED, CODED ERRORS
===============================================================================

Every error raised by the engine:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a stable string CODE and a numeric CODE_NUMBER (API-safe)
  3. Belongs to a DOMAIN (validation, not_found, compliance, sequence, ...)
  4. Carries structured DATA as attributes, exported by ``to_dict()``

Example:
    try:
        settlement.settle_order(order, vendor)
    except VendorNotCompliant as e:
        api_response(status=422, **e.to_dict())
    except SequenceConflictError:
        page_on_call()  # fatal, never retried

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementError (base)
    |
    +-- ValidationError                 domain "validation"   1xxx
    |   +-- MalformedTaxId
    |   +-- ChecksumMismatch
    |   +-- UnknownClassification  (also NotFoundError)
    |   +-- InvalidPercentage
    |   +-- InputValidationError
    |   +-- InvalidPeriod
    |   +-- InvalidStatusTransition
    |
    +-- NotFoundError                   domain "not_found"    2xxx
    |   +-- InvoiceNotFound
    |   +-- LedgerEntryNotFound
    |   +-- ReportNotFound
    |
    +-- ComplianceError                 domain "compliance"   3xxx
    |   +-- VendorNotCompliant
    |
    +-- SequenceError                   domain "sequence"     4xxx
    |   +-- SequenceConflictError  (fatal)
    |   +-- SequenceAllocationError
    |
    +-- InvalidAmount                   domain "arithmetic"   5xxx
    |
    +-- LedgerError                     domain "ledger"       6xxx
    |   +-- LedgerConflictError
    |   +-- LedgerInvariantError
    |
    +-- StorageError                    domain "storage"      7xxx
    |   +-- DuplicateRecordError
    |
    +-- PayoutError                     domain "payout"       8xxx
        +-- PayoutDispatchError
        +-- PayoutRetriesExhausted

===============================================================================
HANDLING PATTERNS
===============================================================================

* Validation and compliance errors go straight back to the caller.  They
  are never retried: the same input fails the same way.
* Only ``StorageError`` is transient.  The sequence allocator retries it a
  bounded number of times and then raises ``SequenceAllocationError``.
* ``SequenceConflictError`` means a number was about to be issued twice.
  It is logged CRITICAL and must never be retried automatically.
"""

from typing import Any


class SettlementError(Exception):
    """
    Base exception for all settlement engine errors.

    Subclasses override ``code``, ``code_number`` and ``domain`` as class
    attributes and store their context as instance attributes.
    """

    code: str = "SETTLEMENT_ERROR"
    code_number: int = 0
    domain: str = "settlement"

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable representation for upstream API translation."""
        data: dict[str, Any] = {
            "domain": self.domain,
            "code": self.code,
            "code_number": self.code_number,
            "message": str(self),
        }
        for key, value in vars(self).items():
            if not key.startswith("_"):
                data[key] = value
        return data


# Validation


class ValidationError(SettlementError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"
    code_number: int = 1000
    domain: str = "validation"


class MalformedTaxId(ValidationError):
    """Tax identifier fails the structural or state-code check."""

    code: str = "MALFORMED_TAX_ID"
    code_number: int = 1001

    def __init__(self, tax_id: str | None, reason: str):
        self.tax_id = tax_id
        self.reason = reason
        super().__init__(f"Malformed tax id {tax_id!r}: {reason}")


class ChecksumMismatch(ValidationError):
    """Tax identifier is well formed but its check character is wrong."""

    code: str = "CHECKSUM_MISMATCH"
    code_number: int = 1002

    def __init__(self, tax_id: str, expected: str, received: str):
        self.tax_id = tax_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Checksum mismatch for tax id {tax_id}: "
            f"expected {expected}, received {received}"
        )


class InvalidPercentage(ValidationError):
    """A percentage is outside [0, 100] or cannot be represented exactly."""

    code: str = "INVALID_PERCENTAGE"
    code_number: int = 1004

    def __init__(self, name: str, value: Any, reason: str = "must be within [0, 100]"):
        self.name = name
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid percentage {name}={value}: {reason}")


class InputValidationError(ValidationError):
    """Inbound payload failed schema validation."""

    code: str = "INPUT_VALIDATION_ERROR"
    code_number: int = 1005

    def __init__(self, schema_name: str, field_errors: list[dict]):
        self.schema_name = schema_name
        self.field_errors = field_errors
        super().__init__(
            f"{schema_name} failed validation: {len(field_errors)} error(s)"
        )


class InvalidPeriod(ValidationError):
    """Reporting period parameters are out of range."""

    code: str = "INVALID_PERIOD"
    code_number: int = 1006

    def __init__(self, period: str, reason: str):
        self.period = period
        self.reason = reason
        super().__init__(f"Invalid period {period}: {reason}")


class InvalidStatusTransition(ValidationError):
    """Requested status change is not declared by the workflow."""

    code: str = "INVALID_STATUS_TRANSITION"
    code_number: int = 1007

    def __init__(self, workflow: str, from_state: str, action: str):
        self.workflow = workflow
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Workflow {workflow} has no action {action!r} from state {from_state!r}"
        )


# Not found


class NotFoundError(SettlementError):
    """Base exception for missing records and reference data."""

    code: str = "NOT_FOUND"
    code_number: int = 2000
    domain: str = "not_found"


class UnknownClassification(ValidationError, NotFoundError):
    """Classification code is not in the rate table."""

    code: str = "UNKNOWN_CLASSIFICATION"
    code_number: int = 1003
    domain: str = "validation"

    def __init__(self, classification_code: str):
        self.classification_code = classification_code
        super().__init__(f"Unknown classification code: {classification_code}")


class InvoiceNotFound(NotFoundError):
    """No invoice with the given number or order id."""

    code: str = "INVOICE_NOT_FOUND"
    code_number: int = 2001

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Invoice not found: {reference}")


class LedgerEntryNotFound(NotFoundError):
    """No ledger entry recorded for the order id."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"
    code_number: int = 2002

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Ledger entry not found for order {order_id}")


class ReportNotFound(NotFoundError):
    """Requested report kind is not supported."""

    code: str = "REPORT_NOT_FOUND"
    code_number: int = 2003

    def __init__(self, report_kind: str):
        self.report_kind = report_kind
        super().__init__(f"Unknown report kind: {report_kind}")


# Compliance


class ComplianceError(SettlementError):
    """Base exception for regulatory preconditions that are not met."""

    code: str = "COMPLIANCE_ERROR"
    code_number: int = 3000
    domain: str = "compliance"


class VendorNotCompliant(ComplianceError):
    """Vendor cannot be invoiced: tax id missing or invalid."""

    code: str = "VENDOR_NOT_COMPLIANT"
    code_number: int = 3001

    def __init__(self, vendor_id: str, reason: str):
        self.vendor_id = vendor_id
        self.reason = reason
        super().__init__(f"Vendor {vendor_id} is not compliant: {reason}")


# Sequence


class SequenceError(SettlementError):
    """Base exception for invoice number allocation."""

    code: str = "SEQUENCE_ERROR"
    code_number: int = 4000
    domain: str = "sequence"


class SequenceConflictError(SequenceError):
    """
    An invoice number was about to be issued twice.

    Fatal.  Never retried automatically.
    """

    code: str = "SEQUENCE_CONFLICT"
    code_number: int = 4001

    def __init__(self, counter_key: str, value: int, detail: str):
        self.counter_key = counter_key
        self.value = value
        self.detail = detail
        super().__init__(f"Sequence conflict on {counter_key} at {value}: {detail}")


class SequenceAllocationError(SequenceError):
    """Allocation kept failing on transient storage errors."""

    code: str = "SEQUENCE_ALLOCATION_FAILED"
    code_number: int = 4002

    def __init__(self, counter_key: str, attempts: int):
        self.counter_key = counter_key
        self.attempts = attempts
        super().__init__(
            f"Could not allocate from {counter_key} after {attempts} attempt(s)"
        )


# Arithmetic


class InvalidAmount(SettlementError, ArithmeticError):
    """Monetary amount is not a positive integer of minor units."""

    code: str = "INVALID_AMOUNT"
    code_number: int = 5001
    domain: str = "arithmetic"

    def __init__(self, name: str, value: Any, reason: str = "must be a positive integer"):
        self.name = name
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount {name}={value}: {reason}")


# Ledger


class LedgerError(SettlementError):
    """Base exception for the commission ledger."""

    code: str = "LEDGER_ERROR"
    code_number: int = 6000
    domain: str = "ledger"


class LedgerConflictError(LedgerError):
    """Order already recorded with different figures."""

    code: str = "LEDGER_CONFLICT"
    code_number: int = 6001

    def __init__(self, order_id: str, field_names: list[str]):
        self.order_id = order_id
        self.field_names = field_names
        super().__init__(
            f"Ledger entry for order {order_id} already recorded with different "
            f"values for: {', '.join(field_names)}"
        )


class LedgerInvariantError(LedgerError):
    """commission + withheld + net does not equal the order value."""

    code: str = "LEDGER_INVARIANT_VIOLATION"
    code_number: int = 6002

    def __init__(self, order_id: str, order_value: int, allocated: int):
        self.order_id = order_id
        self.order_value = order_value
        self.allocated = allocated
        super().__init__(
            f"Ledger entry for order {order_id} allocates {allocated} "
            f"of order value {order_value}"
        )


# Storage


class StorageError(SettlementError):
    """Transient storage failure."""

    code: str = "STORAGE_ERROR"
    code_number: int = 7000
    domain: str = "storage"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage {operation} failed: {detail}")


class DuplicateRecordError(StorageError):
    """A write raced with another writer for the same key."""

    code: str = "DUPLICATE_RECORD"
    code_number: int = 7001

    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__("put_if_absent", f"{namespace}/{key} already exists")


# Payout


class PayoutError(SettlementError):
    """Base exception for vendor payout dispatch."""

    code: str = "PAYOUT_ERROR"
    code_number: int = 8000
    domain: str = "payout"


class PayoutDispatchError(PayoutError):
    """The payment gateway rejected or failed a transfer."""

    code: str = "PAYOUT_DISPATCH_FAILED"
    code_number: int = 8001

    def __init__(self, idempotency_key: str, reason: str):
        self.idempotency_key = idempotency_key
        self.reason = reason
        super().__init__(f"Payout {idempotency_key} failed: {reason}")


class PayoutRetriesExhausted(PayoutError):
    """Payout reached its attempt limit without a successful transfer."""

    code: str = "PAYOUT_RETRIES_EXHAUSTED"
    code_number: int = 8002

    def __init__(self, idempotency_key: str, attempts: int):
        self.idempotency_key = idempotency_key
        self.attempts = attempts
        super().__init__(f"Payout {idempotency_key} gave up after {attempts} attempt(s)")
