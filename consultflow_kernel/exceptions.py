"""
Typed exception hierarchy for the consultflow kernel.

Every error carries a class-level ``code`` (machine-readable, API-safe) and
stores its context as attributes so callers catch by type and read structured
data instead of parsing messages.

    ConsultflowError (base)
    |
    +-- ValidationError
    |   +-- CoAValidationError
    |   +-- AdjustmentSidesError
    |   +-- UnmappedAccountError
    |   +-- UnknownAccountError
    |   +-- RowValidationError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |   +-- DuplicateRecordError
    |   +-- InvalidReportQueryError
    |   +-- InvalidConsolidationAdjustmentError
    |
    +-- StateError
    |   +-- TrialBalanceLockedError
    |   +-- InvalidStatusTransitionError
    |   +-- StatusConflictError
    |
    +-- NotFoundError
    |   +-- TrialBalanceNotFoundError
    |   +-- AdjustmentNotFoundError
    |   +-- CompanyNotFoundError
    |   +-- ExchangeRateNotFoundError
    |
    +-- AuditError
        +-- AuditChainBrokenError

Data gaps (missing exchange rate, missing company series, missing prior
snapshot) are NOT exceptions.  They are returned as ``DataGap`` records next
to a result computed with the documented fallback.

Error codes
-----------

Category    | Code                        | When raised
------------|-----------------------------|------------------------------------------
Validation  | COA_INVALID                 | Chart of accounts failed validation
            | ADJUSTMENT_SIDES_INVALID    | Adjustment not exactly one positive side
            | UNMAPPED_ACCOUNT            | Upload rows without a resolved account
            | UNKNOWN_ACCOUNT             | Entry code absent from the company CoA
            | ROW_VALIDATION_FAILED       | Parsed upload row is malformed
            | INVALID_CURRENCY            | Not a known currency code
            | INVALID_EXCHANGE_RATE       | Rate is zero, negative or malformed
            | DUPLICATE_RECORD            | Record id already exists
            | INVALID_REPORT_QUERY        | Report range or date bounds malformed
            | INVALID_CONSOLIDATION_ADJ   | Consolidation adjustment input malformed
State       | TRIAL_BALANCE_LOCKED        | Mutation outside the editable states
            | INVALID_STATUS_TRANSITION   | Skipped or backward status change
            | STATUS_CONFLICT             | Stale expected status on compare-and-set
Not found   | TRIAL_BALANCE_NOT_FOUND     | No TB with the given id
            | ADJUSTMENT_NOT_FOUND        | No adjustment with the given id
            | COMPANY_NOT_FOUND           | No company with the given id
            | EXCHANGE_RATE_NOT_FOUND     | No rate with the given id
Audit       | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
"""


class ConsultflowError(Exception):
    """
    Base exception for all consultflow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONSULTFLOW_ERROR"


# Validation exceptions


class ValidationError(ConsultflowError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class CoAValidationError(ValidationError):
    """Chart of accounts failed validation; nothing was written."""

    code: str = "COA_INVALID"

    def __init__(self, company_id: str, errors: list[str]):
        self.company_id = company_id
        self.errors = list(errors)
        super().__init__(
            f"Chart of accounts for {company_id} is invalid: "
            + "; ".join(self.errors)
        )


class AdjustmentSidesError(ValidationError):
    """Adjustment must carry exactly one strictly positive side."""

    code: str = "ADJUSTMENT_SIDES_INVALID"

    def __init__(self, account_code: str, debit: str, credit: str):
        self.account_code = account_code
        self.debit = debit
        self.credit = credit
        super().__init__(
            f"Adjustment on {account_code} must have exactly one positive side: "
            f"debit={debit}, credit={credit}"
        )


class UnmappedAccountError(ValidationError):
    """One or more upload rows could not be mapped to the chart of accounts."""

    code: str = "UNMAPPED_ACCOUNT"

    def __init__(self, company_id: str, source_codes: list[str]):
        self.company_id = company_id
        self.source_codes = list(source_codes)
        super().__init__(
            f"Unmapped account codes for {company_id}: "
            + ", ".join(self.source_codes)
        )


class UnknownAccountError(ValidationError):
    """Entry references an account code absent from the company CoA."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, company_id: str, account_codes: list[str]):
        self.company_id = company_id
        self.account_codes = list(account_codes)
        super().__init__(
            f"Account codes not in chart of accounts for {company_id}: "
            + ", ".join(self.account_codes)
        )


class RowValidationError(ValidationError):
    """A parsed upload row is malformed."""

    code: str = "ROW_VALIDATION_FAILED"

    def __init__(self, row_number: int, issues: list[str]):
        self.row_number = row_number
        self.issues = list(issues)
        super().__init__(f"Row {row_number} is invalid: " + "; ".join(self.issues))


class InvalidCurrencyError(ValidationError):
    """Currency code is not recognised."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency}")


class InvalidExchangeRateError(ValidationError):
    """Exchange rate value is invalid (zero, negative, or malformed)."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate_value: str, reason: str):
        self.rate_value = rate_value
        self.reason = reason
        super().__init__(f"Invalid exchange rate {rate_value}: {reason}")


class DuplicateRecordError(ValidationError):
    """A record with the same id already exists in the collection."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Duplicate {collection} id: {record_id}")


class InvalidReportQueryError(ValidationError):
    """Report query parameter cannot be interpreted."""

    code: str = "INVALID_REPORT_QUERY"

    def __init__(self, parameter: str, value: str, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid report {parameter} {value!r}: {reason}")


class InvalidConsolidationAdjustmentError(ValidationError):
    """Consolidation adjustment input is malformed."""

    code: str = "INVALID_CONSOLIDATION_ADJ"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid consolidation adjustment: {reason}")


# State exceptions


class StateError(ConsultflowError):
    """Base exception for lifecycle violations."""

    code: str = "STATE_ERROR"


class TrialBalanceLockedError(StateError):
    """Trial balance is not in an editable state for this operation."""

    code: str = "TRIAL_BALANCE_LOCKED"

    def __init__(self, tb_id: str, status: str, operation: str):
        self.tb_id = tb_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} on trial balance {tb_id} in status '{status}'"
        )


class InvalidStatusTransitionError(StateError):
    """Requested status change is not the next step of the lifecycle."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, tb_id: str, from_status: str, to_status: str):
        self.tb_id = tb_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Trial balance {tb_id} cannot move from '{from_status}' to '{to_status}'"
        )


class StatusConflictError(StateError):
    """Status changed since the caller last read it."""

    code: str = "STATUS_CONFLICT"

    def __init__(self, tb_id: str, expected_status: str, actual_status: str):
        self.tb_id = tb_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Trial balance {tb_id} status is '{actual_status}', "
            f"expected '{expected_status}'"
        )


# Not-found exceptions


class NotFoundError(ConsultflowError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class TrialBalanceNotFoundError(NotFoundError):
    """Trial balance with given id was not found."""

    code: str = "TRIAL_BALANCE_NOT_FOUND"

    def __init__(self, company_id: str, tb_id: str):
        self.company_id = company_id
        self.tb_id = tb_id
        super().__init__(f"Trial balance not found: {tb_id} (company {company_id})")


class AdjustmentNotFoundError(NotFoundError):
    """Adjustment with given id was not found."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__(f"Adjustment not found: {adjustment_id}")


class CompanyNotFoundError(NotFoundError):
    """Company with given id was not found."""

    code: str = "COMPANY_NOT_FOUND"

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Company not found: {company_id}")


class ExchangeRateNotFoundError(NotFoundError):
    """Exchange rate record with given id was not found."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, company_id: str, rate_id: str):
        self.company_id = company_id
        self.rate_id = rate_id
        super().__init__(f"Exchange rate not found: {rate_id} (company {company_id})")


# Audit exceptions


class AuditError(ConsultflowError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, company_id: str, event_id: str, expected_hash: str, actual_hash: str):
        self.company_id = company_id
        self.event_id = event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken for {company_id} at event {event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
