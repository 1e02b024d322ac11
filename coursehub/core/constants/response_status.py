"""
Shared Response Status Constants

Failure reasons carried by every OperationResult, and the HTTP status each
one maps to at the API boundary.
"""

from enum import Enum


class FailureReason(str, Enum):
    """
    Why a content operation did not succeed.

    - UNAUTHENTICATED: no principal was resolved for the request
    - FORBIDDEN: the principal's role may not perform the operation
    - NOT_FOUND: the target entity (or a referenced parent) does not exist
    - CONFLICT: a unique value such as a slug is already taken
    - VALIDATION_ERROR: the request payload failed validation
    - UNEXPECTED_ERROR: storage or other internal failure
    """
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


# Generic on purpose: internal details never reach the caller
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"
UNAUTHENTICATED_MESSAGE = "You must be logged in"


HTTP_STATUS_BY_REASON = {
    FailureReason.UNAUTHENTICATED: 401,
    FailureReason.FORBIDDEN: 403,
    FailureReason.NOT_FOUND: 404,
    FailureReason.CONFLICT: 409,
    FailureReason.VALIDATION_ERROR: 422,
    FailureReason.UNEXPECTED_ERROR: 500,
}
