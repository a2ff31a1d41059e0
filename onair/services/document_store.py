"""Keyed-document store interface and the in-process implementation.

Documents are plain dicts keyed by id within a collection. The store offers
single-document atomicity only; ``batch_update`` applies several merges and is
atomic here but sequential in the Supabase implementation.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional

from onair.errors import NotFound

logger = logging.getLogger(__name__)

EVENTS = "events"
QA = "qa"
POLLS = "polls"
LIVE_STATE = "live_state"


class DocumentStore(ABC):
    """Generic per-collection keyed document database."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the document (with its ``id``) or None."""

    @abstractmethod
    async def query(self, collection: str, **filters: Any) -> list[dict]:
        """Return documents whose fields equal every filter value."""

    @abstractmethod
    async def create(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        """Insert a document and return its id."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge fields into an existing document. Raises NotFound if absent."""

    @abstractmethod
    async def upsert(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge fields into a document, creating it if absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document. Absent documents are ignored."""

    async def batch_update(self, collection: str, updates: dict[str, dict]) -> None:
        """Apply several merges. Not atomic unless an implementation says so."""
        for doc_id, fields in updates.items():
            await self.update(collection, doc_id, fields)


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            return None
        return {"id": doc_id, **copy.deepcopy(doc)}

    async def query(self, collection: str, **filters: Any) -> list[dict]:
        results = []
        for doc_id, doc in self._collection(collection).items():
            if all(doc.get(key) == value for key, value in filters.items()):
                results.append({"id": doc_id, **copy.deepcopy(doc)})
        return results

    async def create(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        data = {k: v for k, v in data.items() if k != "id"}
        async with self._lock:
            self._collection(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        async with self._lock:
            self._merge(collection, doc_id, fields)

    async def upsert(self, collection: str, doc_id: str, fields: dict) -> None:
        async with self._lock:
            doc = self._collection(collection).setdefault(doc_id, {})
            doc.update(copy.deepcopy(fields))

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            self._collection(collection).pop(doc_id, None)

    async def batch_update(self, collection: str, updates: dict[str, dict]) -> None:
        """Atomic: either every document exists and is merged, or none is."""
        async with self._lock:
            docs = self._collection(collection)
            missing = [doc_id for doc_id in updates if doc_id not in docs]
            if missing:
                raise NotFound(f"{collection} documents not found: {', '.join(missing)}")
            for doc_id, fields in updates.items():
                self._merge(collection, doc_id, fields)

    def _merge(self, collection: str, doc_id: str, fields: dict) -> None:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            raise NotFound(f"{collection} document {doc_id} not found.")
        doc.update(copy.deepcopy(fields))
