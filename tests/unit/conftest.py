"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Generator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
import structlog

from couch_cache_core.interfaces.store import DocumentStore
from couch_cache_infra.repository import CacheRepository
from couch_cache_infra.store.couchdb_store import CouchDBStore
from couch_cache_infra.store.memory_store import InMemoryStore
from tests.mocks.fake_couchdb import BASE_URL, FakeCouchDB
from tests.mocks.mock_factories import FakeClock
from tests.mocks.mock_settings import make_settings


@pytest.fixture
def mock_settings() -> MagicMock:
    """Return a MagicMock Settings with sensible defaults."""
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock fixed at 2026-01-01T12:00Z."""
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Return an empty in-memory document store."""
    return InMemoryStore()


@pytest_asyncio.fixture(params=["memory", "couchdb"])
async def store(request: pytest.FixtureRequest) -> AsyncGenerator[DocumentStore, None]:
    """Yield an empty store of each backend; CouchDB is served by an in-process fake."""
    if request.param == "memory":
        yield InMemoryStore()
    else:
        client = FakeCouchDB().client()
        yield CouchDBStore(BASE_URL, client=client)
        await client.aclose()


@pytest_asyncio.fixture
async def repository(
    store: DocumentStore, clock: FakeClock
) -> AsyncGenerator[CacheRepository, None]:
    """Yield an open repository over each store backend, closed on teardown."""
    async with CacheRepository(store, collection="test", clock=clock) as repo:
        yield repo


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Save and restore root logger handlers around tests that call configure_logging."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.level = original_level
    structlog.contextvars.clear_contextvars()
