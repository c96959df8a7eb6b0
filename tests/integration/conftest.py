"""Integration test fixtures: real CouchDB on localhost:5984."""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from couch_cache_core.config.settings import Settings
from couch_cache_infra.repository import CacheRepository
from couch_cache_infra.store.couchdb_store import CouchDBStore
from tests.mocks.mock_settings import make_real_settings

# ---------------------------------------------------------------------------
# Service health checks (with retry for CI container start-up)
# ---------------------------------------------------------------------------


def _tcp_reachable(
    host: str,
    port: int,
    timeout: float = 1.0,
    retries: int = 15,
    delay: float = 2.0,
) -> bool:
    """Check if a TCP service is reachable, retrying on failure."""
    for attempt in range(retries):
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            if attempt < retries - 1:
                time.sleep(delay)
    return False


_couchdb_up = _tcp_reachable("localhost", 5984, retries=3, delay=1.0)

require_couchdb = pytest.mark.skipif(
    not _couchdb_up,
    reason="CouchDB not reachable on localhost:5984, start a CouchDB container first",
)


# ---------------------------------------------------------------------------
# CouchDB fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def real_settings() -> Settings:
    """Real Settings pointing at the local CouchDB container."""
    return make_real_settings()


@pytest_asyncio.fixture
async def repository(real_settings: Settings) -> AsyncGenerator[CacheRepository, None]:
    """Function-scoped repository over a fresh collection, cleared on teardown."""
    if not _couchdb_up:
        pytest.skip("CouchDB not available")

    store = CouchDBStore.from_settings(real_settings)
    async with CacheRepository(store, collection=real_settings.collection) as repo:
        await repo.clear()
        yield repo
        await repo.clear()


# ---------------------------------------------------------------------------
# Logging cleanup
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Save and restore root logger handlers to prevent I/O-on-closed-file errors."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.level = original_level
