"""
ACL model for forum content.

This module defines the access-control vocabulary shared by the ACL
store, the security service and the grant policy:
- Principal parsing (user:X, role:X)
- Permission levels and their hierarchy
- ACL targets (which object an entry protects)
- ACL entries (who holds which permission on which target)

Invariants:
    - An entry is identified by (target kind, target id, principal, permission)
    - Higher permissions imply lower ones (ADMIN implies everything)
    - Role principals match an actor only through the actor's roles

How to change safely:
    - New principal types must be backward compatible
    - New permission levels must be additive
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class Permission(Enum):
    """Permission levels for access control."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


# Permission hierarchy (higher includes lower)
PERMISSION_HIERARCHY: dict[Permission, set[Permission]] = {
    Permission.READ: {Permission.READ},
    Permission.WRITE: {Permission.READ, Permission.WRITE},
    Permission.DELETE: {Permission.READ, Permission.WRITE, Permission.DELETE},
    Permission.ADMIN: {Permission.READ, Permission.WRITE, Permission.DELETE, Permission.ADMIN},
}


@dataclass(frozen=True)
class Principal:
    """Represents an actor or a role for access control.

    Principal types:
        - user:NAME - Specific user
        - role:NAME - Role-based access
        - group:ID - Group membership
        - system:NAME - System/service accounts

    Attributes:
        type: Principal type (user, role, group, system)
        id: Principal identifier
    """

    type: str
    id: str

    VALID_TYPES = frozenset({"user", "role", "group", "system"})

    @classmethod
    def parse(cls, principal_str: str) -> Principal:
        """Parse a principal string.

        Args:
            principal_str: String like "user:alice" or "role:ROLE_ADMIN"

        Returns:
            Parsed Principal

        Raises:
            ValueError: If format is invalid
        """
        if ":" not in principal_str:
            raise ValueError(f"Invalid principal format: {principal_str}")

        type_str, id_str = principal_str.split(":", 1)
        if type_str not in cls.VALID_TYPES:
            raise ValueError(f"Invalid principal type: {type_str}")
        if not id_str:
            raise ValueError(f"Empty principal id: {principal_str}")

        return cls(type=type_str, id=id_str)

    @classmethod
    def user(cls, name: str) -> Principal:
        return cls(type="user", id=name)

    @classmethod
    def role(cls, name: str) -> Principal:
        return cls(type="role", id=name)

    @property
    def is_role(self) -> bool:
        return self.type == "role"

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"

    def matches(self, actor: Principal, actor_roles: Iterable[str] = ()) -> bool:
        """Check if this principal grants access to an actor.

        Args:
            actor: Actor requesting access
            actor_roles: Role names held by the actor

        Returns:
            True if this principal covers the actor
        """
        if self == actor:
            return True

        if self.is_role:
            return self.id in set(actor_roles)

        return False


@dataclass(frozen=True)
class AclTarget:
    """The object an ACL entry protects.

    Attributes:
        kind: Object kind ("topic", "post", "branch")
        id: Object identifier
    """

    kind: str
    id: int

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


@dataclass(frozen=True)
class AclEntry:
    """ACL entry granting a permission to a principal on a target.

    Attributes:
        target: Protected object
        principal: Who gets access
        permission: What level of access
    """

    target: AclTarget
    principal: Principal
    permission: Permission

    @property
    def key(self) -> tuple[str, int, str, str]:
        """Identity of the entry; granting the same key twice is a no-op."""
        return (self.target.kind, self.target.id, str(self.principal), self.permission.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and storage."""
        return {
            "target": str(self.target),
            "principal": str(self.principal),
            "permission": self.permission.value,
        }

    @classmethod
    def from_row(cls, kind: str, target_id: int, principal: str, permission: str) -> AclEntry:
        """Create from stored column values."""
        return cls(
            target=AclTarget(kind=kind, id=target_id),
            principal=Principal.parse(principal),
            permission=Permission(permission),
        )


def entries_grant(
    entries: Iterable[AclEntry],
    actor: Principal,
    required: Permission,
    actor_roles: Iterable[str] = (),
) -> bool:
    """Check whether any entry grants the required permission to an actor.

    Args:
        entries: ACL entries on a single target
        actor: Actor requesting access
        required: Required permission level
        actor_roles: Role names held by the actor

    Returns:
        True if access is granted
    """
    roles = set(actor_roles)
    for entry in entries:
        if entry.principal.matches(actor, roles):
            if required in PERMISSION_HIERARCHY.get(entry.permission, set()):
                return True
    return False
