"""
Role-based authorization gate for content mutations.

A pure decision over an already-resolved principal: no I/O, no exceptions.
Callers run it before touching storage and return the denial as-is.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from coursehub.app.models.content_models import Principal
from coursehub.core.constants import FailureReason, UserRole

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"

    def to_failure_reason(self) -> FailureReason:
        return FailureReason(self.value)


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "AuthorizationDecision":
        return cls(allowed=False, reason=reason)


def authorize(principal: Optional[Principal], required_role: UserRole) -> AuthorizationDecision:
    """
    Decide whether principal may perform an action requiring required_role.

    Returns:
        allow() when the principal carries the role,
        deny(UNAUTHENTICATED) when no principal is present,
        deny(FORBIDDEN) when the role does not match
    """
    if principal is None or not principal.id:
        return AuthorizationDecision.deny(DenialReason.UNAUTHENTICATED)

    if principal.role != required_role:
        logger.info(
            f"Denied {principal.role.value} principal, {required_role.value} required",
            extra={"user_id": principal.id},
        )
        return AuthorizationDecision.deny(DenialReason.FORBIDDEN)

    return AuthorizationDecision.allow()
