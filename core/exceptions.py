"""
Exceptions for the reconciliation pipeline with structured error context.

Every exception carries a context dictionary that ends up in the
``details`` column of the error log, so operators can see which row,
constraint or phase was involved without re-running anything.

Exception Hierarchy:
    ETLException (base)
    ├── ValidationError
    │   └── RetryExhaustedError
    ├── LoadError
    ├── MergeError
    ├── RunStateError
    └── CorrectionError
        └── StagingRowNotFoundError

ValidationError and RetryExhaustedError are collected per row and written
to the error log; they are never raised out of a run. LoadError and
MergeError abort the phase that raised them.
"""

from typing import Optional, Dict, Any, Sequence
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (row id, table, constraint, ...)
        original_exception: The original exception that was caught (if any)
        error_kind: Value written to the error log's ``kind`` column
    """

    error_kind = "unexpected"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(ETLException):
    """
    A staging row failed one or more business predicates.

    Context should include:
        - staging_row_id: ID of the rejected staging row
        - reasons: Reject reason codes, in check order
        - retry_count: Attempt counter after this validation
    """

    error_kind = "validation"

    def __init__(
        self,
        message: str,
        reasons: Sequence[str] = (),
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.reasons = tuple(reasons)
        self.context["reasons"] = list(self.reasons)


class RetryExhaustedError(ValidationError):
    """A row is still invalid after its last permitted retry. Terminal."""

    error_kind = "retry_exhausted"


# ============================================================================
# Load / Merge Errors
# ============================================================================

class LoadError(ETLException):
    """
    The loader's atomic unit aborted and was rolled back.

    Context should include:
        - operation: Step that failed (INSERT orders, INSERT order_lines, UPDATE staging)
        - table_name: Name of the table
        - rows_in_snapshot: Number of staging rows the unit was loading
        - constraint_name: Name of violated constraint (if known)
    """

    error_kind = "load"


class MergeError(ETLException):
    """The derived fact merge aborted and was rolled back."""

    error_kind = "merge"


# ============================================================================
# Bookkeeping Errors
# ============================================================================

class RunStateError(ETLException):
    """Illegal run lifecycle transition (e.g. sealing a run twice)."""
    pass


class CorrectionError(ETLException):
    """
    A correction could not be applied.

    Raised when the staging row does not exist or has already been
    processed (processed rows are immutable).
    """
    pass


class StagingRowNotFoundError(CorrectionError):
    """The staging row named by a correction does not exist."""
    pass
