"""
Shared fixtures for engine integration tests.

Both stores run on real SQLite files in a temporary directory.
"""

import tempfile
from pathlib import Path

import pytest

from forum.forum_server.security import AclStore, Principal, SecurityService
from forum.forum_server.store import ContentStore
from forum.forum_server.topics import PermissionGrantPolicy, TopicLifecycleEngine, TopicQueryEngine

ADMIN_ROLE = Principal.role("ROLE_ADMIN")

HOUR_MS = 3600 * 1000


class FakeClock:
    """Manually advanced clock returning Unix ms."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def content_store(data_dir):
    store = ContentStore(Path(data_dir) / "content.db", wal_mode=False)
    await store.initialize()
    return store


@pytest.fixture
async def acl_store(data_dir):
    store = AclStore(Path(data_dir) / "acl.db", wal_mode=False)
    await store.initialize()
    return store


@pytest.fixture
def security(acl_store):
    return SecurityService(acl_store)


@pytest.fixture
def engine(content_store, security, clock):
    return TopicLifecycleEngine(
        content_store, security, PermissionGrantPolicy(ADMIN_ROLE), clock=clock
    )


@pytest.fixture
def queries(content_store, clock):
    return TopicQueryEngine(content_store, page_size=3, recent_window_ms=24 * HOUR_MS, clock=clock)


@pytest.fixture
async def branch(content_store):
    section = await content_store.create_section("Main")
    return await content_store.create_branch("General", section_id=section.id)


@pytest.fixture
async def other_branch(content_store):
    return await content_store.create_branch("Offtopic")
