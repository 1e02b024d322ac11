"""
Document store abstraction for course content.

Defines the collection contract every backend implements and an in-memory
backend used for local development and tests. The Firestore backend lives
in firestore_store.py.

Filters are equality maps. A filter value may also be {"$in": [...]} or
{"$ne": value}. The "id" key matches the document id.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from coursehub.core.exceptions import CourseHubError, DuplicateKeyError, ErrorCategory, ErrorCode

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filters = Dict[str, Any]

_SUPPORTED_OPERATORS = ("$in", "$ne")


def new_document_id() -> str:
    return uuid.uuid4().hex


def _condition_matches(actual: Any, condition: Any) -> bool:
    if isinstance(condition, dict):
        unknown = set(condition) - set(_SUPPORTED_OPERATORS)
        if unknown:
            raise CourseHubError(
                f"Unsupported filter operators: {sorted(unknown)}",
                category=ErrorCategory.PERMANENT,
                error_code=ErrorCode.INVALID_FILTER,
            )
        if "$in" in condition and actual not in condition["$in"]:
            return False
        if "$ne" in condition and actual == condition["$ne"]:
            return False
        return True
    return actual == condition


def matches(document: Document, filters: Optional[Filters]) -> bool:
    """Check whether a document satisfies every condition in filters."""
    if not filters:
        return True
    return all(
        _condition_matches(document.get(field), condition)
        for field, condition in filters.items()
    )


class DocumentCollection(ABC):
    """One named collection of documents."""

    def __init__(self, name: str, unique_fields: Iterable[str] = ()):
        self.name = name
        self.unique_fields: Tuple[str, ...] = tuple(unique_fields)

    @abstractmethod
    async def find_by_id(self, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def find(
        self,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def insert_one(self, document: Document) -> str:
        """Insert a document and return its id.

        Raises:
            DuplicateKeyError: a unique field value is already taken
        """

    @abstractmethod
    async def update_by_id(self, doc_id: str, changes: Document) -> bool:
        """Apply changes to a document. Returns False when it does not exist."""

    @abstractmethod
    async def delete_by_id(self, doc_id: str) -> bool:
        """Delete a document. Returns True only if this call removed it."""

    @abstractmethod
    async def delete_many(self, filters: Filters) -> int:
        """Delete every matching document and return how many were removed."""

    async def find_one(
        self,
        filters: Filters,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Optional[Document]:
        rows = await self.find(filters, order_by=order_by, descending=descending, limit=1)
        return rows[0] if rows else None

    async def exists(self, filters: Filters) -> bool:
        return await self.find_one(filters) is not None


class DocumentStore(ABC):
    """Factory for collections backed by one storage technology."""

    @abstractmethod
    def collection(self, name: str, unique_fields: Iterable[str] = ()) -> DocumentCollection:
        ...

    async def close(self) -> None:
        return None


# ============================================
# In-memory backend
# ============================================


class InMemoryCollection(DocumentCollection):
    """
    Dict-backed collection.

    Every call yields to the event loop once before touching data, so
    concurrent requests interleave at the same points they would against a
    networked store. Reads return copies.
    """

    def __init__(self, name: str, unique_fields: Iterable[str] = ()):
        super().__init__(name, unique_fields)
        self._documents: Dict[str, Document] = {}

    def _check_unique(self, candidate: Document, doc_id: str) -> None:
        for field in self.unique_fields:
            value = candidate.get(field)
            if value is None:
                continue
            for other_id, other in self._documents.items():
                if other_id != doc_id and other.get(field) == value:
                    raise DuplicateKeyError(self.name, field, value)

    async def find_by_id(self, doc_id: str) -> Optional[Document]:
        await asyncio.sleep(0)
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(
        self,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        await asyncio.sleep(0)
        rows = [doc for doc in self._documents.values() if matches(doc, filters)]
        if order_by:
            # Documents without the sort field go last in either direction
            present = [doc for doc in rows if doc.get(order_by) is not None]
            missing = [doc for doc in rows if doc.get(order_by) is None]
            present.sort(key=lambda doc: doc[order_by], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return [copy.deepcopy(doc) for doc in rows]

    async def insert_one(self, document: Document) -> str:
        await asyncio.sleep(0)
        doc_id = document.get("id") or new_document_id()
        if doc_id in self._documents:
            raise DuplicateKeyError(self.name, "id", doc_id)
        stored = {**copy.deepcopy(document), "id": doc_id}
        self._check_unique(stored, doc_id)
        self._documents[doc_id] = stored
        return doc_id

    async def update_by_id(self, doc_id: str, changes: Document) -> bool:
        await asyncio.sleep(0)
        current = self._documents.get(doc_id)
        if current is None:
            return False
        updated = {**current, **copy.deepcopy(changes), "id": doc_id}
        self._check_unique(updated, doc_id)
        self._documents[doc_id] = updated
        return True

    async def delete_by_id(self, doc_id: str) -> bool:
        await asyncio.sleep(0)
        return self._documents.pop(doc_id, None) is not None

    async def delete_many(self, filters: Filters) -> int:
        await asyncio.sleep(0)
        doomed = [doc_id for doc_id, doc in self._documents.items() if matches(doc, filters)]
        for doc_id in doomed:
            del self._documents[doc_id]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._documents)


class InMemoryDocumentStore(DocumentStore):
    """Process-local store. Collections are created on first use and kept."""

    def __init__(self):
        self._collections: Dict[str, InMemoryCollection] = {}

    def collection(self, name: str, unique_fields: Iterable[str] = ()) -> InMemoryCollection:
        existing = self._collections.get(name)
        if existing is not None:
            return existing
        created = InMemoryCollection(name, unique_fields)
        self._collections[name] = created
        logger.debug(f"Created in-memory collection '{name}' (unique={list(created.unique_fields)})")
        return created
