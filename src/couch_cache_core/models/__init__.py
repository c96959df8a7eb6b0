"""Domain models for couch-cache."""

from couch_cache_core.models.document import CacheDocument, DocT, new_document

__all__ = [
    "CacheDocument",
    "DocT",
    "new_document",
]
