"""
Content repository: the one place that knows which collections exist.

Built once at process start and handed to the services that need it.
Nothing here caches or re-creates itself behind the caller's back.
"""

import logging
from dataclasses import dataclass

from coursehub.app.config import Settings
from coursehub.core.engine.document_store import DocumentCollection, DocumentStore, InMemoryDocumentStore

logger = logging.getLogger(__name__)

COURSES_COLLECTION = "courses"
MODULES_COLLECTION = "modules"
LESSONS_COLLECTION = "lessons"
SESSIONS_COLLECTION = "sessions"
ACTIVITIES_COLLECTION = "activities"


@dataclass
class ContentRepository:
    store: DocumentStore
    courses: DocumentCollection
    modules: DocumentCollection
    lessons: DocumentCollection
    sessions: DocumentCollection
    activities: DocumentCollection

    @classmethod
    def from_store(cls, store: DocumentStore) -> "ContentRepository":
        return cls(
            store=store,
            courses=store.collection(COURSES_COLLECTION, unique_fields=("slug",)),
            modules=store.collection(MODULES_COLLECTION),
            lessons=store.collection(LESSONS_COLLECTION),
            sessions=store.collection(SESSIONS_COLLECTION),
            activities=store.collection(ACTIVITIES_COLLECTION),
        )

    async def close(self) -> None:
        await self.store.close()


def build_repository(settings: Settings) -> ContentRepository:
    """Construct the repository for the configured storage backend."""
    if settings.storage_backend == "firestore":
        from coursehub.core.engine.firestore_store import FirestoreDocumentStore

        store = FirestoreDocumentStore.from_project(
            project_id=settings.gcp_project_id,
            database=settings.firestore_database,
        )
    else:
        store = InMemoryDocumentStore()

    logger.info(f"Content repository using '{settings.storage_backend}' storage backend")
    return ContentRepository.from_store(store)
