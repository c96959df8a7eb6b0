"""Document store factory."""

from __future__ import annotations

import structlog

from couch_cache_core.config.settings import Settings
from couch_cache_core.interfaces.store import DocumentStore
from couch_cache_infra.store.couchdb_store import CouchDBStore
from couch_cache_infra.store.memory_store import InMemoryStore

logger = structlog.get_logger()


def create_store(settings: Settings) -> DocumentStore:
    """Create the document store selected by settings.store_backend."""
    if settings.store_backend == "memory":
        logger.info("store_selected", backend="memory")
        return InMemoryStore()
    logger.info("store_selected", backend="couchdb", url=settings.couchdb_url)
    return CouchDBStore.from_settings(settings)
