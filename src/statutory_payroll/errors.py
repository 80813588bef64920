"""Exception hierarchy for statutory payroll records."""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class StatutoryPayrollError(Exception):
    """Base class for all errors raised by this package."""

    code = "STATUTORY_PAYROLL_ERROR"


# ===== Input validation =====


class ValidationError(StatutoryPayrollError):
    """Raised when employee facts are rejected before any store write."""

    code = "VALIDATION_ERROR"


class InvalidRateError(ValidationError):
    """Raised when a bonus rate falls outside the statutory band."""

    code = "INVALID_RATE"

    def __init__(self, rate: Decimal, min_rate: Decimal, max_rate: Decimal):
        self.rate = rate
        self.min_rate = min_rate
        self.max_rate = max_rate
        super().__init__(
            f"Bonus rate {rate}% is outside the allowed range {min_rate}%-{max_rate}%"
        )


class InvalidMonthsError(ValidationError):
    """Raised when months worked is not a whole number between 0 and 12."""

    code = "INVALID_MONTHS"

    def __init__(self, months: Any):
        self.months = months
        super().__init__(f"Months worked must be an integer in [0, 12], got {months!r}")


class InvalidDateRangeError(ValidationError):
    """Raised when a reference date precedes the date of joining."""

    code = "INVALID_DATE_RANGE"

    def __init__(self, start: Any, end: Any):
        self.start = start
        self.end = end
        super().__init__(f"Reference date {end} is before date of joining {start}")


class InvalidAmountError(ValidationError):
    """Raised when a monetary input is not a non-negative amount in whole paise."""

    code = "INVALID_AMOUNT"

    def __init__(self, field_name: str, value: Any):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} must be a non-negative amount in whole paise, got {value!r}")


# ===== Lifecycle =====


class InvalidTransitionError(StatutoryPayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        # Status enums are stored by value
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RecordNotFoundError(StatutoryPayrollError):
    """Raised when a record id does not resolve to a stored record."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, record_id: Any):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} record {record_id} not found")


# ===== Store / maintenance =====


class ConstraintViolationError(StatutoryPayrollError):
    """Raised when concurrent writers keep colliding on the active-record index."""

    code = "CONSTRAINT_VIOLATION"

    def __init__(self, kind: str, key: dict[str, Any], attempts: int):
        self.kind = kind
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"Could not upsert active {kind} record for {key} after {attempts} attempt(s)"
        )


class ReconciliationMismatchError(StatutoryPayrollError):
    """Raised when the reconciler finds an index it does not recognize.

    The run halts before any drop/create so an operator can inspect it.
    """

    code = "RECONCILIATION_MISMATCH"

    def __init__(self, table: str, index_name: str | None, reason: str):
        self.table = table
        self.index_name = index_name
        self.reason = reason
        where = f"{table}.{index_name}" if index_name else table
        super().__init__(f"Refusing to reconcile {where}: {reason}")
