"""Shared constants for couch-cache."""

from __future__ import annotations

# Separator between key, type name and sub-key in a specific entry's identifier
ID_SEPARATOR = ":"

# Escape sequences applied to identifier components (order matters: '%' first)
ID_ESCAPES: tuple[tuple[str, str], ...] = (
    ("%", "%25"),
    (ID_SEPARATOR, "%3A"),
)

# CouchDB reserves identifiers starting with an underscore
RESERVED_ID_PREFIX = "_"
RESERVED_ID_PREFIX_ESCAPE = "%5F"

# Field holding the payload class name in every stored document
TYPE_FIELD = "cache_type"

# Store-owned identifier field
ID_FIELD = "_id"

DEFAULT_COLLECTION = "couch_cache"

# CouchDB defaults
DEFAULT_COUCHDB_HOST = "http://localhost"
DEFAULT_COUCHDB_PORT = 5984

# Upper bound on documents fetched by a single Mango query
FIND_LIMIT = 100_000
