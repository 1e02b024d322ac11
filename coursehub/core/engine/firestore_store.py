"""
Google Cloud Firestore backend for the content document store.

Firestore has no unique indexes, so unique fields are enforced with
reservation documents: `{collection}__unique_{field}/{value}`. A reservation
is created in the same atomic batch as the entity write, and Firestore's
create() precondition makes the losing writer fail with AlreadyExists.

Collection Structure:
courses/{course_id}
courses__unique_slug/{slug}
    - document_id: str
modules/{module_id}, lessons/{lesson_id}, sessions/{session_id}, activities/{activity_id}
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.api_core import exceptions as gcp_exceptions
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from coursehub.core.engine.document_store import (
    Document,
    DocumentCollection,
    DocumentStore,
    Filters,
    matches,
    new_document_id,
)
from coursehub.core.exceptions import DuplicateKeyError, StorageError

logger = logging.getLogger(__name__)

# Transient errors worth retrying
_TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.TooManyRequests,
)

# Firestore caps a batch at 500 writes
_MAX_BATCH_WRITES = 500

_OPERATORS = {"$in": "in", "$ne": "!="}


def _give_up(retry_state) -> None:
    """Called by tenacity once attempts are exhausted on a transient error."""
    error = retry_state.outcome.exception()
    operation = getattr(retry_state.fn, "__qualname__", "firestore call")
    wrapped = StorageError(
        f"Firestore unavailable after {retry_state.attempt_number} attempts",
        transient=True,
        context={"operation": operation},
        original_error=error,
    )
    logger.error(f"{operation} gave up: {wrapped.to_dict()}")
    raise wrapped from error


# Only for calls that are safe to repeat: reads, re-reading updates and
# batches whose writes carry no preconditions.
_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    retry_error_callback=_give_up,
)


def _snapshot_to_document(snapshot) -> Document:
    return {**(snapshot.to_dict() or {}), "id": snapshot.id}


@_transient_retry
async def _get(ref):
    return await ref.get()


@_transient_retry
async def _commit(batch) -> None:
    await batch.commit()


class FirestoreCollection(DocumentCollection):
    """DocumentCollection over one Firestore collection."""

    def __init__(self, client: firestore.AsyncClient, name: str, unique_fields: Iterable[str] = ()):
        super().__init__(name, unique_fields)
        self._client = client
        self._ref = client.collection(name)

    def _reservation_ref(self, field: str, value: Any):
        return self._client.collection(f"{self.name}__unique_{field}").document(str(value))

    def _build_query(self, filters: Optional[Filters]):
        """Push field conditions to Firestore; id conditions are applied client-side."""
        query = self._ref
        id_filters: Filters = {}
        for field, condition in (filters or {}).items():
            if field == "id":
                id_filters[field] = condition
                continue
            if isinstance(condition, dict):
                for operator, value in condition.items():
                    query = query.where(filter=FieldFilter(field, _OPERATORS[operator], value))
            else:
                query = query.where(filter=FieldFilter(field, "==", condition))
        return query, id_filters

    async def _raise_duplicate(self, document: Document, error: Exception) -> None:
        """Translate AlreadyExists into DuplicateKeyError for the reservation that collided."""
        for field in self.unique_fields:
            value = document.get(field)
            if value is None:
                continue
            snapshot = await _get(self._reservation_ref(field, value))
            if snapshot.exists and snapshot.get("document_id") != document.get("id"):
                raise DuplicateKeyError(self.name, field, value) from error
        raise StorageError(
            f"Conflicting write in '{self.name}'",
            context={"collection": self.name},
            original_error=error,
        ) from error

    async def _resolve_create_conflict(self, doc_id: str, data: Document, error: Exception) -> None:
        """
        Decide what an AlreadyExists on create means.

        Either another document holds one of our unique values, or an earlier
        attempt of this same create landed before its response was lost. The
        second case returns normally so the caller reports success.
        """
        for field in self.unique_fields:
            value = data.get(field)
            if value is None:
                continue
            snapshot = await _get(self._reservation_ref(field, value))
            if snapshot.exists and snapshot.get("document_id") != doc_id:
                raise DuplicateKeyError(self.name, field, value) from error

        existing = await _get(self._ref.document(doc_id))
        if existing.exists and (existing.to_dict() or {}) == data:
            logger.info(f"Create of {self.name}/{doc_id} was already applied by an earlier attempt")
            return
        if existing.exists:
            raise DuplicateKeyError(self.name, "id", doc_id) from error
        raise StorageError(
            f"Conflicting write in '{self.name}'",
            context={"collection": self.name, "document_id": doc_id},
            original_error=error,
        ) from error

    @_transient_retry
    async def find_by_id(self, doc_id: str) -> Optional[Document]:
        snapshot = await self._ref.document(doc_id).get()
        return _snapshot_to_document(snapshot) if snapshot.exists else None

    @_transient_retry
    async def find(
        self,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        query, id_filters = self._build_query(filters)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None and not id_filters:
            query = query.limit(limit)

        rows: List[Document] = []
        async for snapshot in query.stream():
            document = _snapshot_to_document(snapshot)
            if matches(document, id_filters):
                rows.append(document)
                if limit is not None and len(rows) >= limit:
                    break
        return rows

    async def insert_one(self, document: Document) -> str:
        # Fixed before any attempt so a retried commit writes the same document
        doc_id = document.get("id") or new_document_id()
        data = {k: v for k, v in document.items() if k != "id"}

        batch = self._client.batch()
        for field in self.unique_fields:
            value = data.get(field)
            if value is not None:
                batch.create(self._reservation_ref(field, value), {"document_id": doc_id})
        batch.create(self._ref.document(doc_id), data)

        try:
            await _commit(batch)
        except gcp_exceptions.AlreadyExists as e:
            await self._resolve_create_conflict(doc_id, data, e)

        return doc_id

    @_transient_retry
    async def update_by_id(self, doc_id: str, changes: Document) -> bool:
        # Re-reads the document on every attempt, so a repeat after a lost
        # response finds the reservations already swapped and only re-applies
        # the field changes.
        doc_ref = self._ref.document(doc_id)
        changes = {k: v for k, v in changes.items() if k != "id"}
        unique_changes = [f for f in self.unique_fields if f in changes]

        if not unique_changes:
            try:
                await doc_ref.update(changes)
            except gcp_exceptions.NotFound:
                return False
            return True

        snapshot = await doc_ref.get()
        if not snapshot.exists:
            return False
        current = snapshot.to_dict() or {}

        batch = self._client.batch()
        for field in unique_changes:
            old_value, new_value = current.get(field), changes[field]
            if old_value == new_value:
                continue
            if new_value is not None:
                batch.create(self._reservation_ref(field, new_value), {"document_id": doc_id})
            if old_value is not None:
                batch.delete(self._reservation_ref(field, old_value))
        batch.update(doc_ref, changes)

        try:
            await batch.commit()
        except gcp_exceptions.AlreadyExists as e:
            await self._raise_duplicate({**current, **changes, "id": doc_id}, e)
        except gcp_exceptions.NotFound:
            return False
        return True

    async def delete_by_id(self, doc_id: str) -> bool:
        """
        Delete with an exists precondition so the result says whether this
        call removed the document. Never retried: a repeat after a lost
        response would report the call's own delete as NotFound.
        """
        doc_ref = self._ref.document(doc_id)
        must_exist = self._client.write_option(exists=True)

        try:
            if not self.unique_fields:
                await doc_ref.delete(option=must_exist)
                return True

            snapshot = await _get(doc_ref)
            if not snapshot.exists:
                return False
            current = snapshot.to_dict() or {}

            batch = self._client.batch()
            batch.delete(doc_ref, option=must_exist)
            for field in self.unique_fields:
                if current.get(field) is not None:
                    batch.delete(self._reservation_ref(field, current[field]))
            await batch.commit()
            return True
        except gcp_exceptions.NotFound:
            return False
        except _TRANSIENT_ERRORS as e:
            raise StorageError(
                f"Delete of {self.name}/{doc_id} did not complete; outcome unknown",
                transient=True,
                context={"collection": self.name, "document_id": doc_id},
                original_error=e,
            ) from e

    async def delete_many(self, filters: Filters) -> int:
        # Each batch commit is retried on its own; plain deletes are safe to
        # repeat and the running count is kept across retries.
        query, id_filters = self._build_query(filters)
        writes_per_doc = 1 + len(self.unique_fields)
        docs_per_batch = max(1, _MAX_BATCH_WRITES // writes_per_doc)

        deleted = 0
        batch = self._client.batch()
        pending = 0
        async for snapshot in query.stream():
            document = _snapshot_to_document(snapshot)
            if not matches(document, id_filters):
                continue
            batch.delete(snapshot.reference)
            for field in self.unique_fields:
                if document.get(field) is not None:
                    batch.delete(self._reservation_ref(field, document[field]))
            pending += 1
            if pending >= docs_per_batch:
                await _commit(batch)
                deleted += pending
                batch = self._client.batch()
                pending = 0

        if pending:
            await _commit(batch)
            deleted += pending

        logger.debug(f"Deleted {deleted} documents from '{self.name}' matching {filters}")
        return deleted


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore backed by a single Firestore AsyncClient."""

    def __init__(self, client: firestore.AsyncClient):
        self._client = client
        self._collections: Dict[str, FirestoreCollection] = {}

    @classmethod
    def from_project(cls, project_id: str, database: str = "(default)") -> "FirestoreDocumentStore":
        client = firestore.AsyncClient(project=project_id, database=database)
        logger.info(f"Initialized Firestore document store for project {project_id} (database={database})")
        return cls(client)

    def collection(self, name: str, unique_fields: Iterable[str] = ()) -> FirestoreCollection:
        existing = self._collections.get(name)
        if existing is not None:
            return existing
        created = FirestoreCollection(self._client, name, unique_fields)
        self._collections[name] = created
        return created
