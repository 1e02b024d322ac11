"""
Content CRUD Service

Admin mutations over the course content hierarchy.
"""

from coursehub.core.services.content_crud.repository import (
    ContentRepository,
    build_repository,
)
from coursehub.core.services.content_crud.service import ContentService

__all__ = [
    "ContentRepository",
    "ContentService",
    "build_repository",
]
