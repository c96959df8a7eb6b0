"""Abstract document store interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DocumentStore(Protocol):
    """Document store consumed by the cache repository; implementations can be swapped."""

    async def ensure_collection(self, collection: str) -> None:
        """Create the collection if it does not exist."""
        ...

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """Create or fully replace a document."""
        ...

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by ID, or None if not found."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; a missing document is not an error."""
        ...

    async def delete_all(self, collection: str) -> None:
        """Delete every document in the collection."""
        ...

    async def count(self, collection: str, type_filter: str | None = None) -> int:
        """Count documents, optionally only those of one payload type."""
        ...

    async def scan(
        self,
        collection: str,
        prefix: str = "",
        type_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents whose ID starts with prefix, in ID order."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...
