"""Custom exception hierarchy for couch-cache."""

from __future__ import annotations


class CouchCacheError(Exception):
    """Base exception for all couch-cache errors."""


class StoreUnavailableError(CouchCacheError):
    """Raised when the document store cannot be reached or times out."""


class DecodeFailureError(CouchCacheError):
    """Raised when a stored document cannot be materialized as the requested type."""


class KeyDecodeError(DecodeFailureError):
    """Raised when a physical document identifier cannot be parsed."""


class ConflictError(CouchCacheError):
    """Raised when the store rejects a write because of a revision conflict."""
