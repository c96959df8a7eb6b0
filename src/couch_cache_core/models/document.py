"""Cache document models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class CacheDocument(BaseModel):
    """Base shape of every cached payload.

    Subclasses declare their own fields; undeclared fields read back from the
    store are kept as extras so nothing is lost on a round-trip.
    """

    model_config = ConfigDict(extra="allow")

    key: str = Field(
        default_factory=lambda: str(uuid4()), description="Logical cache key"
    )
    sub_key: str | None = Field(
        default=None, description="Sub-key of a specific entry; None for plain entries"
    )
    expires_at: datetime | None = Field(
        default=None, description="Absolute UTC expiry; None means no expiry"
    )


DocT = TypeVar("DocT", bound=CacheDocument)


def new_document(
    doc_type: type[DocT] = CacheDocument,  # type: ignore[assignment]
    key: str | None = None,
    **fields: Any,  # noqa: ANN401
) -> DocT:
    """Build a document, generating a unique key only when none is supplied."""
    if key is None:
        key = str(uuid4())
    return doc_type(key=key, **fields)
