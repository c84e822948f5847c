"""
Operation Result Value Object

Encapsulates the outcome of a core operation as a typed value instead of a
raised exception. Translation to transport status codes happens in the
calling layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from domain.errors import DomainError, ErrorCategory, ErrorKind, describe_error

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Value object representing the result of an operation.

    Encapsulates success/failure state, the produced value and error details.
    """

    success: bool
    value: Optional[T] = None
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "OperationResult[T]":
        """
        Create a successful result.

        Args:
            value: The produced value

        Returns:
            OperationResult indicating success
        """
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error_category: ErrorCategory, error_message: str) -> "OperationResult[T]":
        """
        Create a failed result.

        Args:
            error_category: Category of error that occurred
            error_message: Technical error message

        Returns:
            OperationResult indicating failure
        """
        return cls(success=False, error_category=error_category, error_message=error_message)

    @classmethod
    def from_error(cls, error: DomainError) -> "OperationResult[T]":
        return cls.fail(error.category, str(error))

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error_category.kind if self.error_category else None

    @property
    def retryable(self) -> bool:
        """True when the failure is transient and the caller may retry later."""
        return self.error_category is not None and self.error_category.is_retryable()

    def unwrap(self) -> T:
        """Return the value or raise if the operation failed."""
        if not self.success:
            raise ValueError(
                f"Cannot unwrap failed result: {self.error_category.value}: {self.error_message}"
            )
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert result to dictionary for serialization.

        Returns:
            Dictionary representation of the result
        """
        data: Dict[str, Any] = {"success": self.success}
        if self.success:
            value = self.value
            data["value"] = value.to_dict() if hasattr(value, "to_dict") else value
        else:
            data["error"] = describe_error(self.error_category)
            data["error_message"] = self.error_message
        return data
