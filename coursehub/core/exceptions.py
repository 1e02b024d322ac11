"""
Structured Error Handling for the content service.
Provides an error hierarchy with categorization, error codes, and structured context.

Service operations never let these escape to callers: they are caught at the
operation boundary and turned into an OperationResult.
"""

from typing import Dict, Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification and handling."""
    TRANSIENT = "TRANSIENT"  # Temporary errors that should be retried
    PERMANENT = "PERMANENT"  # Errors that won't succeed on retry
    CONFLICT = "CONFLICT"  # Uniqueness violations


class ErrorCode(str, Enum):
    """Standardized error codes for monitoring and debugging."""
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    STORAGE_ERROR = "STORAGE_ERROR"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    SLUG_CONFLICT = "SLUG_CONFLICT"
    INVALID_FILTER = "INVALID_FILTER"


class CourseHubError(Exception):
    """
    Base exception for all content service errors.

    Provides structured error information for logging and error recovery.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        error_code: ErrorCode,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize structured exception.

        Args:
            message: Human-readable error message
            category: Error category for classification
            error_code: Standardized error code
            context: Additional context (collection, field, value, ...)
            original_error: Original exception if wrapped
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.error_code = error_code
        self.context = context or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logs."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "category": self.category.value,
        }

        if self.context:
            result["context"] = self.context

        if self.original_error:
            result["original_error"] = str(self.original_error)

        return result


class StorageError(CourseHubError):
    """A document store call failed."""

    def __init__(
        self,
        message: str,
        transient: bool = False,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TRANSIENT if transient else ErrorCategory.PERMANENT,
            error_code=ErrorCode.STORAGE_UNAVAILABLE if transient else ErrorCode.STORAGE_ERROR,
            context=context,
            original_error=original_error,
        )


class DuplicateKeyError(CourseHubError):
    """A write would break a unique-field constraint."""

    def __init__(self, collection: str, field: str, value: Any):
        super().__init__(
            message=f"Duplicate value for unique field '{field}' in '{collection}': {value!r}",
            category=ErrorCategory.CONFLICT,
            error_code=ErrorCode.DUPLICATE_KEY,
            context={"collection": collection, "field": field, "value": value},
        )
        self.collection = collection
        self.field = field
        self.value = value


class SlugConflictError(CourseHubError):
    """Slug persistence kept colliding with concurrent writers."""

    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            message=f"Could not persist a unique slug for '{base_slug}' after {attempts} conflicts",
            category=ErrorCategory.CONFLICT,
            error_code=ErrorCode.SLUG_CONFLICT,
            context={"base_slug": base_slug, "attempts": attempts},
        )
        self.base_slug = base_slug
        self.attempts = attempts
