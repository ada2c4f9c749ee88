"""
Unit tests for the permission grant policy.

Tests cover:
- Grants on topic creation and replies
- No ACL changes on update and move
- Revocations on delete
"""

import pytest

from forum.forum_server.security.acl import AclTarget, Permission, Principal
from forum.forum_server.store.entities import Post, Topic
from forum.forum_server.topics.policy import AclChangeSet, PermissionGrantPolicy

ADMIN_ROLE = Principal.role("ROLE_ADMIN")


def make_topic(topic_id=10, post_ids=(100,)):
    topic = Topic(title="t", starter="user:alice", branch_id=1, created_at=1, modified_at=1, id=topic_id)
    for post_id in post_ids:
        topic.add_post(Post(author="user:alice", content="c", created_at=1, id=post_id))
    return topic


class TestPermissionGrantPolicy:
    """Tests for PermissionGrantPolicy."""

    @pytest.fixture
    def policy(self):
        return PermissionGrantPolicy(ADMIN_ROLE)

    def test_admin_must_be_role(self):
        """A user cannot be configured as the admin principal."""
        with pytest.raises(ValueError):
            PermissionGrantPolicy(Principal.user("root"))

    def test_topic_created_grants(self, policy):
        """Starter and admin role get ADMIN on topic and first post."""
        alice = Principal.user("alice")
        changes = policy.topic_created(alice, make_topic())

        granted = {(e.target, e.principal, e.permission) for e in changes.grants}
        assert granted == {
            (AclTarget("topic", 10), alice, Permission.ADMIN),
            (AclTarget("topic", 10), ADMIN_ROLE, Permission.ADMIN),
            (AclTarget("post", 100), alice, Permission.ADMIN),
            (AclTarget("post", 100), ADMIN_ROLE, Permission.ADMIN),
        }
        assert changes.revocations == ()

    def test_post_created_grants_on_post_only(self, policy):
        """Reply grants cover the new post, never the topic."""
        bob = Principal.user("bob")
        post = Post(author="user:bob", content="reply", created_at=2, id=101, topic_id=10)

        changes = policy.post_created(bob, post)

        assert {e.target for e in changes.grants} == {AclTarget("post", 101)}
        assert {e.principal for e in changes.grants} == {bob, ADMIN_ROLE}

    def test_update_and_move_change_nothing(self, policy):
        """Updates and moves leave ACL entries alone."""
        topic = make_topic()
        assert policy.topic_updated(topic).is_empty
        assert policy.topic_moved(topic, 1, 2).is_empty

    def test_topic_deleted_revokes_topic_and_posts(self, policy):
        """Delete revokes the topic and every post in it."""
        changes = policy.topic_deleted(make_topic(post_ids=(100, 101, 102)))

        assert changes.grants == ()
        assert set(changes.revocations) == {
            AclTarget("topic", 10),
            AclTarget("post", 100),
            AclTarget("post", 101),
            AclTarget("post", 102),
        }

    def test_unsaved_topic_rejected(self, policy):
        """Grants need stored ids."""
        topic = Topic(title="t", starter="user:alice", branch_id=1, created_at=1, modified_at=1)
        topic.add_post(Post(author="user:alice", content="c", created_at=1))

        with pytest.raises(ValueError):
            policy.topic_created(Principal.user("alice"), topic)

    def test_change_set_to_dict(self):
        """Change sets render for logging."""
        changes = AclChangeSet(revocations=(AclTarget("topic", 1),))
        assert changes.to_dict() == {"grants": [], "revocations": ["topic:1"]}
