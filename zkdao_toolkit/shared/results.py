"""
Result types for explicit success/failure tracking in batch operations.

Single calls raise typed exceptions (see shared.exceptions). Batch helpers,
such as fetching eligibility proofs for several voters, return one Result per
item so that one failing voter does not hide the others.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from zkdao_toolkit.shared.exceptions import error_kind

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Severity levels for processing errors."""

    WARNING = "warning"  # Continue processing, log issue
    ERROR = "error"  # Skip this item, continue others
    CRITICAL = "critical"  # Stop processing entirely


@dataclass
class ProcessingError:
    """
    Represents a single processing error with context.

    Attributes:
        source: Component that generated the error (e.g., "eligibility", "proof")
        message: Human-readable error description
        severity: How severe the error is (affects control flow)
        context: Additional context like proposal_id or voter
        exception: Original exception if available
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None

    @property
    def kind(self) -> Optional[str]:
        """ErrorKind value of the wrapped exception, if any."""
        if self.exception is None:
            return None
        kind = error_kind(self.exception)
        return kind.value if kind else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
            "kind": self.kind,
            "context": self.context,
        }


@dataclass
class Result(Generic[T]):
    """
    Result type that carries success/failure information.

    Attributes:
        success: Whether the operation succeeded
        data: The result data if successful
        errors: Errors encountered (can hold warnings even on success)
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        """Create a successful result with data."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ProcessingError) -> "Result[T]":
        """Create a failed result with an error."""
        return cls(success=False, errors=[error])

    @classmethod
    def from_exception(
        cls,
        source: str,
        exception: Exception,
        context: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> "Result[T]":
        """Create a failed result wrapping an exception."""
        return cls.fail(
            ProcessingError(
                source=source,
                message=str(exception),
                severity=severity,
                context=context or {},
                exception=exception,
            )
        )

    def add_warning(
        self,
        source: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Add a warning to the result (success status unchanged)."""
        self.errors.append(
            ProcessingError(
                source=source,
                message=message,
                severity=ErrorSeverity.WARNING,
                context=context or {},
            )
        )
        return self

    def has_errors(self) -> bool:
        """Check if result has any ERROR or CRITICAL level errors."""
        return any(
            e.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
            for e in self.errors
        )

    def has_warnings(self) -> bool:
        """Check if result has any WARNING level errors."""
        return any(e.severity == ErrorSeverity.WARNING for e in self.errors)

    def get_error_messages(self) -> List[str]:
        """Get all error messages as strings."""
        return [e.message for e in self.errors]

    def unwrap(self) -> T:
        """Return the data, re-raising the original exception on failure."""
        if self.success:
            return self.data
        for error in self.errors:
            if error.exception is not None:
                raise error.exception
        raise RuntimeError("; ".join(self.get_error_messages()))
