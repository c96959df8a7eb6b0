"""Public interface re-exports for couch_cache_core."""

from couch_cache_core.interfaces.store import DocumentStore

__all__ = [
    "DocumentStore",
]
