"""Cache repository over a DocumentStore: plain and specific entries with TTL."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Self
from uuid import uuid4

import structlog
from pydantic import TypeAdapter, ValidationError

from couch_cache_core.constants import DEFAULT_COLLECTION, ID_FIELD, TYPE_FIELD
from couch_cache_core.exceptions import (
    CouchCacheError,
    DecodeFailureError,
    StoreUnavailableError,
)
from couch_cache_core.key_codec import decode_id, encode_id, specific_prefix
from couch_cache_core.models.document import CacheDocument, DocT
from couch_cache_core.ttl import Clock, compute_expiry, is_expired, utc_now
from couch_cache_infra.observability.logging import operation_context

if TYPE_CHECKING:
    from types import TracebackType

    from couch_cache_core.interfaces.store import DocumentStore

logger = structlog.get_logger()

_EXPIRY_ADAPTER: TypeAdapter[datetime | None] = TypeAdapter(datetime | None)


class CacheRepository:
    """Cache of document-shaped payloads backed by a document store.

    Plain entries are addressed by key alone. Specific entries are addressed
    by key, payload type and sub-key, so several of them can live under one
    key next to a plain entry without overwriting each other.

    Expired documents are never returned: a read that hits one reports a miss
    and schedules a background delete. Enter the repository as an async
    context manager before use: entering creates the collection, and leaving
    releases the store on every exit path::

        async with CacheRepository(store) as repo:
            await repo.set(doc, "k", ttl=timedelta(seconds=5))

    Writes made without entering fail with ``StoreUnavailableError`` on a
    store whose collection does not exist yet.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str = DEFAULT_COLLECTION,
        clock: Clock = utc_now,
        default_timeout: float | None = None,
    ) -> None:
        """Initialize with a configured store; the repository owns it from here on."""
        self._store = store
        self._collection = collection
        self._clock = clock
        self._default_timeout = default_timeout
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def collection(self) -> str:
        """Name of the collection holding the cache documents."""
        return self._collection

    async def __aenter__(self) -> Self:
        try:
            async with self._deadline(None, "ensure_collection"):
                await self._store.ensure_collection(self._collection)
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Drain pending cleanup and release the store."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.wait_for_cleanup()
        finally:
            await self._store.close()
            logger.debug("cache_repository_closed", collection=self._collection)

    # ------------------------------------------------------------------
    # Plain entries
    # ------------------------------------------------------------------

    async def set(
        self,
        doc: CacheDocument,
        key: str,
        ttl: timedelta | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        """Store doc as the plain entry for key, replacing any previous one."""
        doc.key = key
        doc.sub_key = None
        doc.expires_at = compute_expiry(ttl, self._clock())
        async with self._deadline(timeout, "set"):
            await self._store.put(self._collection, encode_id(key), self._serialize(doc))
        logger.debug("cache_set", key=key, doc_type=type(doc).__name__, ttl=_seconds(ttl))

    async def get(
        self,
        key: str,
        doc_type: type[DocT] = CacheDocument,  # type: ignore[assignment]
        *,
        timeout: float | None = None,
    ) -> DocT | None:
        """Return the plain entry for key, or None if absent or expired."""
        async with self._deadline(timeout, "get"):
            raw = await self._store.get(self._collection, encode_id(key))
        return self._live_or_none(raw, doc_type, key)

    async def remove(self, key: str, *, timeout: float | None = None) -> None:
        """Remove the plain entry for key; removing a missing key is a no-op."""
        async with self._deadline(timeout, "remove"):
            await self._store.delete(self._collection, encode_id(key))
        logger.debug("cache_removed", key=key)

    # ------------------------------------------------------------------
    # Specific entries
    # ------------------------------------------------------------------

    async def set_specific(
        self,
        doc: CacheDocument,
        key: str,
        sub_key: str | None = None,
        ttl: timedelta | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        """Store doc under key and sub_key, scoped to the document's type.

        A sub-key is generated when none is given; the one used is written
        back to ``doc.sub_key``.
        """
        if sub_key is None:
            sub_key = str(uuid4())
        type_name = type(doc).__name__
        doc.key = key
        doc.sub_key = sub_key
        doc.expires_at = compute_expiry(ttl, self._clock())
        doc_id = encode_id(key, sub_key, type_name)
        async with self._deadline(timeout, "set_specific"):
            await self._store.put(self._collection, doc_id, self._serialize(doc))
        logger.debug("cache_set_specific", key=key, sub_key=sub_key, doc_type=type_name)

    async def get_specific(
        self,
        key: str,
        doc_type: type[DocT],
        sub_key: str | None = None,
        *,
        timeout: float | None = None,
    ) -> DocT | None:
        """Return a specific entry of doc_type under key, or None.

        With a sub_key, that exact entry is read. Without one, the first live
        entry of doc_type under key (in identifier order) is returned.
        """
        type_name = doc_type.__name__
        if sub_key is not None:
            async with self._deadline(timeout, "get_specific"):
                raw = await self._store.get(
                    self._collection, encode_id(key, sub_key, type_name)
                )
            return self._live_or_none(raw, doc_type, key)

        async with self._deadline(timeout, "get_specific"):
            candidates = await self._store.scan(
                self._collection, prefix=specific_prefix(key, type_name)
            )
        now = self._clock()
        for raw in candidates:
            if self._raw_expired(raw, now):
                self._schedule_cleanup(raw[ID_FIELD])
                continue
            return self._materialize(raw, doc_type)
        logger.debug("cache_miss", key=key, doc_type=type_name)
        return None

    async def remove_specific(
        self,
        key: str,
        doc_type: type[CacheDocument],
        sub_key: str | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        """Remove specific entries of doc_type under key.

        With a sub_key only that entry goes; without one, every entry of
        doc_type under key does. Entries of other types are untouched.
        """
        type_name = doc_type.__name__
        async with self._deadline(timeout, "remove_specific"):
            if sub_key is not None:
                doc_ids = [encode_id(key, sub_key, type_name)]
            else:
                found = await self._store.scan(
                    self._collection, prefix=specific_prefix(key, type_name)
                )
                doc_ids = [raw[ID_FIELD] for raw in found]
            await asyncio.gather(
                *(self._store.delete(self._collection, doc_id) for doc_id in doc_ids)
            )
        logger.debug("cache_removed_specific", key=key, doc_type=type_name, removed=len(doc_ids))

    # ------------------------------------------------------------------
    # Collection-wide operations
    # ------------------------------------------------------------------

    async def clear(self, *, timeout: float | None = None) -> None:
        """Delete every document in the collection."""
        async with self._deadline(timeout, "clear"):
            await self._store.delete_all(self._collection)
        logger.info("cache_cleared", collection=self._collection)

    async def get_doc_count(
        self,
        doc_type: type[CacheDocument] = CacheDocument,
        *,
        live_only: bool = True,
        timeout: float | None = None,
    ) -> int:
        """Count documents of doc_type; expired ones are excluded unless live_only=False."""
        type_name = doc_type.__name__
        async with self._deadline(timeout, "get_doc_count"):
            if not live_only:
                return await self._store.count(self._collection, type_name)
            docs = await self._store.scan(self._collection, type_filter=type_name)
        now = self._clock()
        return sum(1 for raw in docs if not self._raw_expired(raw, now))

    async def purge_expired(self, *, timeout: float | None = None) -> int:
        """Delete every expired document in the collection and return how many went."""
        async with self._deadline(timeout, "purge_expired"):
            docs = await self._store.scan(self._collection)
            now = self._clock()
            expired = [raw[ID_FIELD] for raw in docs if self._raw_expired(raw, now)]
            await asyncio.gather(
                *(self._store.delete(self._collection, doc_id) for doc_id in expired)
            )
        logger.info("cache_purged", collection=self._collection, removed=len(expired))
        return len(expired)

    async def wait_for_cleanup(self) -> None:
        """Wait for every scheduled lazy delete to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _deadline(self, timeout: float | None, operation: str) -> AsyncIterator[None]:
        """Bound a store call by the caller's (or the default) deadline."""
        limit = self._default_timeout if timeout is None else timeout
        try:
            with operation_context(operation):
                async with asyncio.timeout(limit):
                    yield
        except TimeoutError as e:
            logger.warning("store_timeout", operation=operation, timeout=limit)
            msg = f"{operation} did not complete within {limit}s"
            raise StoreUnavailableError(msg) from e

    def _serialize(self, doc: CacheDocument) -> dict[str, Any]:
        """Dump a document to its stored JSON shape."""
        data = doc.model_dump(mode="json")
        data[TYPE_FIELD] = type(doc).__name__
        return data

    def _materialize(self, raw: dict[str, Any], doc_type: type[DocT]) -> DocT:
        """Validate a stored document as doc_type, restoring key and sub-key from its ID."""
        decoded = decode_id(raw[ID_FIELD])
        fields = {
            name: value
            for name, value in raw.items()
            if not name.startswith("_") and name != TYPE_FIELD
        }
        fields["key"] = decoded.key
        fields["sub_key"] = decoded.sub_key
        try:
            return doc_type.model_validate(fields)
        except ValidationError as e:
            msg = f"Document {raw[ID_FIELD]!r} cannot be read as {doc_type.__name__}"
            raise DecodeFailureError(msg) from e

    def _raw_expired(self, raw: dict[str, Any], now: datetime) -> bool:
        """Evaluate the TTL policy against a stored document."""
        try:
            expires_at = _EXPIRY_ADAPTER.validate_python(raw.get("expires_at"))
        except ValidationError as e:
            msg = f"Document {raw.get(ID_FIELD)!r} has an invalid expires_at"
            raise DecodeFailureError(msg) from e
        return is_expired(expires_at, now)

    def _live_or_none(
        self, raw: dict[str, Any] | None, doc_type: type[DocT], key: str
    ) -> DocT | None:
        """Materialize raw unless it is missing or expired."""
        if raw is None:
            logger.debug("cache_miss", key=key, doc_type=doc_type.__name__)
            return None
        if self._raw_expired(raw, self._clock()):
            logger.debug("cache_expired", key=key, doc_id=raw[ID_FIELD])
            self._schedule_cleanup(raw[ID_FIELD])
            return None
        return self._materialize(raw, doc_type)

    def _schedule_cleanup(self, doc_id: str) -> None:
        """Delete an expired document in the background."""
        task = asyncio.create_task(self._cleanup(doc_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _cleanup(self, doc_id: str) -> None:
        """Delete doc_id if it is still expired; failures are logged, not raised."""
        with operation_context("cleanup"):
            try:
                raw = await self._store.get(self._collection, doc_id)
                if raw is not None and self._raw_expired(raw, self._clock()):
                    await self._store.delete(self._collection, doc_id)
                    logger.debug("cache_expired_removed", doc_id=doc_id)
            except CouchCacheError as e:
                logger.warning("cache_cleanup_failed", doc_id=doc_id, error=str(e))


def _seconds(ttl: timedelta | None) -> float | None:
    """TTL in seconds for log output."""
    return ttl.total_seconds() if ttl is not None else None
