"""In-memory implementation of DocumentStore."""

from __future__ import annotations

import copy
from typing import Any

from couch_cache_core.constants import ID_FIELD, TYPE_FIELD


class InMemoryStore:
    """Dict-backed document store for tests and zero-infra runs."""

    def __init__(self) -> None:
        """Initialize with no collections."""
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.closed = False

    def _docs(self, collection: str) -> dict[str, dict[str, Any]]:
        """Return the document map of a collection, creating it on first use."""
        return self._collections.setdefault(collection, {})

    async def ensure_collection(self, collection: str) -> None:
        """Create the collection if it does not exist."""
        self._docs(collection)

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """Store a deep copy so later caller mutations do not leak in."""
        stored = copy.deepcopy(document)
        stored[ID_FIELD] = doc_id
        self._docs(collection)[doc_id] = stored

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a copy of a document by ID."""
        doc = self._docs(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; a missing ID is a no-op."""
        self._docs(collection).pop(doc_id, None)

    async def delete_all(self, collection: str) -> None:
        """Delete every document in the collection."""
        self._docs(collection).clear()

    async def count(self, collection: str, type_filter: str | None = None) -> int:
        """Count documents, optionally filtered by payload type."""
        docs = self._docs(collection).values()
        if type_filter is None:
            return len(docs)
        return sum(1 for doc in docs if doc.get(TYPE_FIELD) == type_filter)

    async def scan(
        self,
        collection: str,
        prefix: str = "",
        type_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents whose ID starts with prefix, in ID order."""
        docs = self._docs(collection)
        return [
            copy.deepcopy(docs[doc_id])
            for doc_id in sorted(docs)
            if doc_id.startswith(prefix)
            and (type_filter is None or docs[doc_id].get(TYPE_FIELD) == type_filter)
        ]

    async def close(self) -> None:
        """Mark the store closed."""
        self.closed = True
