"""Physical document identifiers for plain and specific cache entries.

A plain entry is stored under its escaped key. A specific entry is stored
under ``key:type:sub_key`` with each component escaped, so that

* a plain id never contains an unescaped separator and cannot collide with a
  specific id,
* entries of different payload types under one key never collide,
* all specific ids of one ``(key, type)`` pair share a common prefix, which
  lets the store answer "every sub-entry of this type under this key" with a
  single ordered range scan.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from couch_cache_core.constants import (
    ID_ESCAPES,
    ID_SEPARATOR,
    RESERVED_ID_PREFIX,
    RESERVED_ID_PREFIX_ESCAPE,
)
from couch_cache_core.exceptions import KeyDecodeError

_ESCAPE_PATTERN = re.compile(r"%(25|3A|5F)")
_STRAY_PERCENT = re.compile(r"%(?!25|3A|5F)")
_UNESCAPES = {"25": "%", "3A": ID_SEPARATOR, "5F": RESERVED_ID_PREFIX}
_MAX_CHAR = chr(0x10FFFF)


@dataclass(frozen=True)
class DecodedId:
    """Logical address recovered from a physical identifier."""

    key: str
    type_name: str | None = None
    sub_key: str | None = None

    @property
    def is_specific(self) -> bool:
        """True when the identifier addresses a specific entry."""
        return self.sub_key is not None


def _escape(component: str) -> str:
    """Escape one identifier component."""
    for raw, escaped in ID_ESCAPES:
        component = component.replace(raw, escaped)
    if component.startswith(RESERVED_ID_PREFIX):
        component = RESERVED_ID_PREFIX_ESCAPE + component[1:]
    return component


def _unescape(component: str, physical_id: str) -> str:
    """Reverse _escape, rejecting escapes it never produces."""
    if _STRAY_PERCENT.search(component):
        msg = f"Invalid escape sequence in document id {physical_id!r}"
        raise KeyDecodeError(msg)
    return _ESCAPE_PATTERN.sub(lambda m: _UNESCAPES[m.group(1)], component)


def encode_id(key: str, sub_key: str | None = None, type_name: str | None = None) -> str:
    """Compose the physical identifier for a plain or specific entry."""
    if not key:
        msg = "key must be a non-empty string"
        raise ValueError(msg)
    if sub_key is None:
        return _escape(key)
    if not type_name:
        msg = "type_name is required for a specific entry"
        raise ValueError(msg)
    if not sub_key:
        msg = "sub_key must be a non-empty string"
        raise ValueError(msg)
    return ID_SEPARATOR.join((_escape(key), _escape(type_name), _escape(sub_key)))


def specific_prefix(key: str, type_name: str) -> str:
    """Common prefix of every specific id for one key and payload type."""
    if not key or not type_name:
        msg = "key and type_name must be non-empty strings"
        raise ValueError(msg)
    return ID_SEPARATOR.join((_escape(key), _escape(type_name))) + ID_SEPARATOR


def prefix_upper_bound(prefix: str) -> str | None:
    """Exclusive upper bound of the code-point range holding every id that starts with prefix.

    Returns None when no such bound exists, i.e. the prefix is empty or made
    only of the highest code point.
    """
    stripped = prefix.rstrip(_MAX_CHAR)
    if not stripped:
        return None
    return stripped[:-1] + chr(ord(stripped[-1]) + 1)


def decode_id(physical_id: str) -> DecodedId:
    """Recover key, type name and sub-key from a physical identifier."""
    parts = physical_id.split(ID_SEPARATOR)
    if any(not part for part in parts):
        msg = f"Empty component in document id {physical_id!r}"
        raise KeyDecodeError(msg)
    if len(parts) == 1:
        return DecodedId(key=_unescape(parts[0], physical_id))
    if len(parts) == 3:
        key, type_name, sub_key = (_unescape(p, physical_id) for p in parts)
        return DecodedId(key=key, type_name=type_name, sub_key=sub_key)
    msg = f"Document id {physical_id!r} has {len(parts)} components, expected 1 or 3"
    raise KeyDecodeError(msg)
