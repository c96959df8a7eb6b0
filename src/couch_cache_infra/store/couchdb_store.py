"""CouchDB-backed implementation of DocumentStore over the HTTP API."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx
import structlog

from couch_cache_core.constants import FIND_LIMIT, ID_FIELD, TYPE_FIELD
from couch_cache_core.exceptions import ConflictError, StoreUnavailableError
from couch_cache_core.key_codec import prefix_upper_bound

if TYPE_CHECKING:
    from types import TracebackType

    from couch_cache_core.config.settings import Settings

logger = structlog.get_logger()

_DESIGN_PREFIX = "_design/"


def _quote(segment: str) -> str:
    """Percent-encode a database name or document ID for use as one path segment."""
    return quote(segment, safe="")


class CouchDBStore:
    """Document store backed by a CouchDB server."""

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize with server URL and credentials, or a preconfigured client."""
        self._owns_client = client is None
        if client is None:
            auth = httpx.BasicAuth(username, password or "") if username else None
            client = httpx.AsyncClient(base_url=base_url, auth=auth, timeout=timeout)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> CouchDBStore:
        """Build a store from application settings."""
        password = settings.couchdb_password
        return cls(
            base_url=settings.couchdb_url,
            username=settings.couchdb_username,
            password=password.get_secret_value() if password else None,
            timeout=settings.request_timeout_seconds,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        allowed: tuple[int, ...],
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        """Send a request, mapping transport and status failures to cache errors."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("store_timeout", method=method, path=path)
            msg = f"CouchDB request timed out: {method} {path}"
            raise StoreUnavailableError(msg) from e
        except httpx.TransportError as e:
            logger.warning("store_unavailable", method=method, path=path, error=str(e))
            msg = f"CouchDB unreachable: {e}"
            raise StoreUnavailableError(msg) from e

        if response.status_code in allowed:
            return response
        if response.status_code == httpx.codes.CONFLICT:
            msg = f"Revision conflict on {path}"
            raise ConflictError(msg)
        logger.warning(
            "store_request_failed",
            method=method,
            path=path,
            status=response.status_code,
        )
        msg = f"CouchDB {method} {path} failed with status {response.status_code}"
        raise StoreUnavailableError(msg)

    async def _current_rev(self, db: str, doc_id: str) -> str | None:
        """Return the current revision of a document, or None if it does not exist."""
        response = await self._request("HEAD", f"/{db}/{_quote(doc_id)}", allowed=(200, 404))
        if response.status_code == 404:
            return None
        etag = response.headers.get("ETag")
        return etag.strip('"') if etag else None

    async def ensure_collection(self, collection: str) -> None:
        """Create the database unless it already exists."""
        response = await self._request("PUT", f"/{_quote(collection)}", allowed=(201, 202, 412))
        if response.status_code != 412:
            logger.info("collection_created", collection=collection)

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """Create or fully replace a document."""
        db = _quote(collection)
        body = {k: v for k, v in document.items() if k != "_rev"}
        body[ID_FIELD] = doc_id
        rev = await self._current_rev(db, doc_id)
        if rev:
            body["_rev"] = rev
        response = await self._request(
            "PUT", f"/{db}/{_quote(doc_id)}", allowed=(201, 202, 404), json=body
        )
        if response.status_code == 404:
            msg = f"Collection {collection!r} does not exist; call ensure_collection first"
            raise StoreUnavailableError(msg)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by ID."""
        response = await self._request(
            "GET", f"/{_quote(collection)}/{_quote(doc_id)}", allowed=(200, 404)
        )
        if response.status_code == 404:
            return None
        return response.json()  # type: ignore[no-any-return]

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; a missing document is a no-op."""
        db = _quote(collection)
        rev = await self._current_rev(db, doc_id)
        if rev is None:
            return
        await self._request(
            "DELETE",
            f"/{db}/{_quote(doc_id)}",
            allowed=(200, 202, 404),
            params={"rev": rev},
        )

    async def delete_all(self, collection: str) -> None:
        """Delete every non-design document with a single bulk request."""
        db = _quote(collection)
        response = await self._request("GET", f"/{db}/_all_docs", allowed=(200, 404))
        if response.status_code == 404:
            return
        tombstones = [
            {ID_FIELD: row["id"], "_rev": row["value"]["rev"], "_deleted": True}
            for row in response.json().get("rows", [])
            if not row["id"].startswith(_DESIGN_PREFIX)
        ]
        if not tombstones:
            return
        response = await self._request(
            "POST", f"/{db}/_bulk_docs", allowed=(201, 202), json={"docs": tombstones}
        )
        failed = [row["id"] for row in response.json() if "error" in row]
        if failed:
            logger.warning(
                "collection_clear_incomplete",
                collection=collection,
                deleted=len(tombstones) - len(failed),
                failed=len(failed),
            )
            msg = f"{len(failed)} document(s) in {collection} changed during clear: {failed[:5]}"
            raise ConflictError(msg)
        logger.info("collection_cleared", collection=collection, deleted=len(tombstones))

    async def count(self, collection: str, type_filter: str | None = None) -> int:
        """Count documents, optionally filtered by payload type via a Mango query."""
        db = _quote(collection)
        if type_filter is None:
            response = await self._request("GET", f"/{db}", allowed=(200, 404))
            if response.status_code == 404:
                return 0
            return int(response.json().get("doc_count", 0))

        response = await self._request(
            "POST",
            f"/{db}/_find",
            allowed=(200, 404),
            json={
                "selector": {TYPE_FIELD: type_filter},
                "fields": [ID_FIELD],
                "limit": FIND_LIMIT,
            },
        )
        if response.status_code == 404:
            return 0
        return len(response.json().get("docs", []))

    async def scan(
        self,
        collection: str,
        prefix: str = "",
        type_filter: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents whose ID starts with prefix, in ID order."""
        params: dict[str, str] = {"include_docs": "true"}
        if prefix:
            params["startkey"] = json.dumps(prefix)
            upper = prefix_upper_bound(prefix)
            if upper is not None:
                # _all_docs orders ids by raw code point
                params["endkey"] = json.dumps(upper)
                params["inclusive_end"] = "false"
        response = await self._request(
            "GET", f"/{_quote(collection)}/_all_docs", allowed=(200, 404), params=params
        )
        if response.status_code == 404:
            return []
        docs: list[dict[str, Any]] = []
        for row in response.json().get("rows", []):
            doc = row.get("doc")
            if doc is None or row["id"].startswith(_DESIGN_PREFIX):
                continue
            if type_filter is not None and doc.get(TYPE_FIELD) != type_filter:
                continue
            docs.append(doc)
        return docs

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()
