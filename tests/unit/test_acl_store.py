"""
Unit tests for the ACL SQLite store.

Tests cover:
- Idempotent grants
- Revocation per target
- Permission checks through SecurityService
"""

import tempfile
from pathlib import Path

import pytest

from forum.forum_server.errors import PreconditionViolation
from forum.forum_server.security.acl import AclEntry, AclTarget, Permission, Principal
from forum.forum_server.security.acl_store import AclStore
from forum.forum_server.security.context import SecurityService
from forum.forum_server.topics.policy import AclChangeSet


class TestAclStore:
    """Tests for AclStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    async def store(self, data_dir):
        store = AclStore(Path(data_dir) / "acl.db", wal_mode=False)
        await store.initialize()
        return store

    @pytest.mark.asyncio
    async def test_grant_is_idempotent(self, store):
        """Granting the same entry twice stores it once."""
        entry = AclEntry(AclTarget("topic", 1), Principal.user("alice"), Permission.ADMIN)

        assert await store.grant([entry]) == 1
        assert await store.grant([entry]) == 0

        assert await store.get_entries(AclTarget("topic", 1)) == [entry]
        assert await store.count_entries() == 1

    @pytest.mark.asyncio
    async def test_revoke_all_only_touches_target(self, store):
        """Revocation removes every entry on a target and nothing else."""
        topic, post = AclTarget("topic", 1), AclTarget("post", 1)
        await store.grant(
            [
                AclEntry(topic, Principal.user("alice"), Permission.ADMIN),
                AclEntry(topic, Principal.role("ROLE_ADMIN"), Permission.ADMIN),
                AclEntry(post, Principal.user("alice"), Permission.ADMIN),
            ]
        )

        removed = await store.revoke_all([topic])

        assert removed == 2
        assert await store.get_entries(topic) == []
        assert len(await store.get_entries(post)) == 1


class TestSecurityService:
    """Tests for SecurityService."""

    @pytest.fixture
    def data_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    async def security(self, data_dir):
        store = AclStore(Path(data_dir) / "acl.db", wal_mode=False)
        await store.initialize()
        return SecurityService(store)

    @pytest.mark.asyncio
    async def test_require_principal_missing(self, security):
        """No principal is a precondition violation."""
        with pytest.raises(PreconditionViolation):
            security.require_principal(None)

    @pytest.mark.asyncio
    async def test_require_principal_parses_strings(self, security):
        """Principal strings are accepted."""
        assert security.require_principal("user:alice") == Principal.user("alice")

    @pytest.mark.asyncio
    async def test_require_principal_malformed(self, security):
        """Malformed principal strings are precondition violations."""
        with pytest.raises(PreconditionViolation):
            security.require_principal("alice")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [42, object(), ("user", "alice")])
    async def test_require_principal_wrong_type(self, security, value):
        """Values that are neither Principals nor strings are rejected."""
        with pytest.raises(PreconditionViolation):
            security.require_principal(value)

    @pytest.mark.asyncio
    async def test_grant_and_check(self, security):
        """Granted permission is visible to checks."""
        target = AclTarget("topic", 5)
        alice = Principal.user("alice")

        await security.grant(alice, Permission.WRITE, target)

        assert await security.has_permission(alice, Permission.READ, target)
        assert not await security.has_permission(alice, Permission.ADMIN, target)

    @pytest.mark.asyncio
    async def test_apply_change_set(self, security):
        """Grants then revocations are applied from one change set."""
        old, new = AclTarget("post", 1), AclTarget("post", 2)
        bob = Principal.user("bob")
        await security.grant(bob, Permission.ADMIN, old)

        await security.apply(
            AclChangeSet(
                grants=(AclEntry(new, bob, Permission.ADMIN),),
                revocations=(old,),
            )
        )

        assert await security.entries_for(old) == []
        assert await security.has_permission(bob, Permission.ADMIN, new)
