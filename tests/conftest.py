"""
Shared fixtures for content service tests.
Everything runs against the in-memory document store, so no GCP credentials
are needed.
"""

import os
import pytest
from unittest.mock import AsyncMock

# Set test environment BEFORE any imports that read settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("GCP_PROJECT_ID", "test-project")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DISABLE_AUTH", "false")

from coursehub.app.models.content_models import Principal, RecordResult
from coursehub.core.constants import UserRole
from coursehub.core.engine.document_store import InMemoryDocumentStore
from coursehub.core.services.activity_recorder import ActivityRecorder
from coursehub.core.services.content_crud import ContentRepository, ContentService


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Clear lru_cache on settings between tests."""
    from coursehub.app.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def repository():
    return ContentRepository.from_store(InMemoryDocumentStore())


@pytest.fixture()
def recorder(repository):
    return ActivityRecorder(repository.activities)


@pytest.fixture()
def service(repository, recorder):
    return ContentService(repository, recorder=recorder)


@pytest.fixture()
def failing_recorder():
    """Recorder whose every call blows up."""
    mock = AsyncMock(spec=ActivityRecorder)
    mock.record.side_effect = RuntimeError("activity store down")
    return mock


@pytest.fixture()
def rejecting_recorder():
    """Recorder that reports failure without raising."""
    mock = AsyncMock(spec=ActivityRecorder)
    mock.record.return_value = RecordResult(success=False, message="Failed to create activity")
    return mock


@pytest.fixture()
def admin():
    return Principal(id=TEST_ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture()
def student():
    return Principal(id=TEST_STUDENT_ID, role=UserRole.STUDENT)


@pytest.fixture()
def seed(repository):
    """Insert documents directly, bypassing the service."""

    async def _seed(collection: str, **fields) -> str:
        return await getattr(repository, collection).insert_one(fields)

    return _seed


# Test data constants
TEST_ADMIN_ID = "admin-123"
TEST_STUDENT_ID = "student-456"
