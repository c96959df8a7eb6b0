"""Tests for CacheDocument and new_document."""

from __future__ import annotations

from uuid import UUID

import pytest

from couch_cache_core.models.document import CacheDocument, new_document
from tests.mocks.mock_factories import Car

pytestmark = pytest.mark.unit


class TestCacheDocument:
    """Tests for the base document model."""

    def test_default_key_is_unique_uuid(self) -> None:
        """Each document gets a fresh uuid4 key."""
        first, second = CacheDocument(), CacheDocument()
        assert first.key != second.key
        UUID(first.key)

    def test_defaults_are_plain_and_unexpiring(self) -> None:
        """No sub-key and no expiry by default."""
        doc = CacheDocument()
        assert doc.sub_key is None
        assert doc.expires_at is None

    def test_extra_fields_are_kept(self) -> None:
        """Undeclared fields round-trip through model_dump."""
        doc = CacheDocument.model_validate({"key": "k", "colour": "red"})
        assert doc.model_dump()["colour"] == "red"

    def test_subclass_fields(self) -> None:
        """Subclasses add declared fields."""
        car = Car(maker="MakerOne")
        assert car.maker == "MakerOne"
        assert car.model_dump()["maker"] == "MakerOne"


class TestNewDocument:
    """Tests for the explicit document factory."""

    def test_generates_key_when_missing(self) -> None:
        """A key is generated only when none is supplied."""
        doc = new_document()
        assert isinstance(doc, CacheDocument)
        UUID(doc.key)

    def test_keeps_supplied_key(self) -> None:
        """A supplied key is used as-is."""
        assert new_document(key="given").key == "given"

    def test_builds_subclass_with_fields(self) -> None:
        """Type and fields are forwarded to the model."""
        car = new_document(Car, key="k", maker="MakerTwo")
        assert isinstance(car, Car)
        assert (car.key, car.maker) == ("k", "MakerTwo")
