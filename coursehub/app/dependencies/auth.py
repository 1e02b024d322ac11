"""
Authentication dependency for the content service.
Resolves the acting principal from X-User-Id and X-User-Role headers
injected by the authenticating gateway.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException

from coursehub.app.config import get_settings
from coursehub.app.models.content_models import Principal
from coursehub.core.constants import UserRole

logger = logging.getLogger(__name__)


def _parse_role(raw_role: Optional[str]) -> UserRole:
    """Validate the role header. Always enforced."""
    try:
        return UserRole((raw_role or UserRole.STUDENT.value).strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid X-User-Role. Must be one of: {', '.join(r.value for r in UserRole)}",
        )


async def get_current_principal(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> Optional[Principal]:
    """
    Return the principal for this request, or None when no one is signed in.

    The gateway validates the session and forwards the user id and role.
    A missing principal is not an error here; the service answers with
    UNAUTHENTICATED so every operation reports it the same way.
    """
    settings = get_settings()

    if settings.disable_auth:
        return Principal(id=settings.dev_user_id, role=_parse_role(settings.dev_user_role))

    user_id = (x_user_id or "").strip()
    if not user_id:
        return None

    if len(user_id) > 100:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")

    return Principal(id=user_id, role=_parse_role(x_user_role))
