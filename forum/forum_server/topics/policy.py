"""
Permission grant policy for topic lifecycle events.

Maps each lifecycle event to the ACL grants and revocations it requires.
The policy is pure: it reads entities and returns an AclChangeSet without
touching any store, so the same change set can be replayed by a repair
sweep after a crash between the content commit and the ACL write.

Invariants:
    - Topic creation grants ADMIN to the starter and the admin role on the
      topic and on its first post
    - A reply grants ADMIN to its author and the admin role on that post only
    - Updates and moves change no ACL entries
    - Deletion revokes every entry on the topic and on each of its posts
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..security.acl import AclEntry, AclTarget, Permission, Principal
from ..store.entities import Post, Topic


@dataclass(frozen=True)
class AclChangeSet:
    """ACL changes required by one lifecycle event.

    Attributes:
        grants: Entries to create (idempotent)
        revocations: Targets whose entries are all removed
    """

    grants: tuple[AclEntry, ...] = field(default_factory=tuple)
    revocations: tuple[AclTarget, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.grants and not self.revocations

    def to_dict(self) -> dict[str, list]:
        return {
            "grants": [g.to_dict() for g in self.grants],
            "revocations": [str(t) for t in self.revocations],
        }


NO_CHANGES = AclChangeSet()


class PermissionGrantPolicy:
    """Decides which ACL entries a lifecycle event creates or removes.

    Attributes:
        admin_role: Role principal that administers all new content
    """

    def __init__(self, admin_role: Principal) -> None:
        if not admin_role.is_role:
            raise ValueError(f"Admin principal must be a role, got {admin_role}")
        self.admin_role = admin_role

    def _admin_grants(self, owner: Principal, targets: list[AclTarget]) -> tuple[AclEntry, ...]:
        return tuple(
            AclEntry(target=target, principal=principal, permission=Permission.ADMIN)
            for target in targets
            for principal in (owner, self.admin_role)
        )

    def topic_created(self, starter: Principal, topic: Topic) -> AclChangeSet:
        return AclChangeSet(
            grants=self._admin_grants(starter, [topic.acl_target, topic.first_post.acl_target])
        )

    def post_created(self, author: Principal, post: Post) -> AclChangeSet:
        return AclChangeSet(grants=self._admin_grants(author, [post.acl_target]))

    def topic_updated(self, topic: Topic) -> AclChangeSet:
        return NO_CHANGES

    def topic_moved(self, topic: Topic, source_branch_id: int, target_branch_id: int) -> AclChangeSet:
        # Authorship grants stay as they are; branch-level policy is not re-derived.
        return NO_CHANGES

    def topic_deleted(self, topic: Topic) -> AclChangeSet:
        targets = [topic.acl_target] + [post.acl_target for post in topic.posts]
        return AclChangeSet(revocations=tuple(targets))
