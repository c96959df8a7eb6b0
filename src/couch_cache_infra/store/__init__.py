"""Document store implementations."""

from couch_cache_infra.store.couchdb_store import CouchDBStore
from couch_cache_infra.store.factory import create_store
from couch_cache_infra.store.memory_store import InMemoryStore

__all__ = [
    "CouchDBStore",
    "InMemoryStore",
    "create_store",
]
