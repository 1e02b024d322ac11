"""
Core Constants Module

Centralized constants for roles, activity types and operation failure reasons.
"""

from coursehub.core.constants.response_status import (
    FailureReason,
    HTTP_STATUS_BY_REASON,
    UNAUTHENTICATED_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
)
from coursehub.core.constants.roles import ActivityType, UserRole

__all__ = [
    "FailureReason",
    "HTTP_STATUS_BY_REASON",
    "UNAUTHENTICATED_MESSAGE",
    "UNEXPECTED_ERROR_MESSAGE",
    "ActivityType",
    "UserRole",
]
