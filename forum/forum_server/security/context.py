"""
Security service: acting principal resolution and ACL maintenance.

The engines never look up the acting principal from ambient state; callers
pass it in and the service checks that one is present. Grants and
revocations go to the AclStore, which is a separate resource from the
content store.

Invariants:
    - A mutating operation without a principal raises PreconditionViolation
    - Grants are idempotent; applying the same change set twice is safe
    - Revocation removes every entry on a target

How to change safely:
    - Keep apply() order: grants first, then revocations
    - Never swallow store errors; callers must see partial failures
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from ..errors import PreconditionViolation
from .acl import AclEntry, AclTarget, Permission, Principal, entries_grant
from .acl_store import AclStore

if TYPE_CHECKING:
    from ..topics.policy import AclChangeSet

logger = logging.getLogger(__name__)


class SecurityService:
    """Resolves principals and manages ACL entries on content objects.

    Thread safety:
        This class is stateless apart from its store and is thread-safe.

    Example:
        >>> security = SecurityService(acl_store)
        >>> actor = security.require_principal(Principal.user("alice"))
        >>> await security.grant(actor, Permission.ADMIN, topic.acl_target)
    """

    def __init__(self, acl_store: AclStore) -> None:
        self.acl_store = acl_store

    def require_principal(self, principal: Principal | str | None) -> Principal:
        """Resolve the acting principal of an operation.

        Args:
            principal: Principal, principal string, or None

        Returns:
            The resolved Principal

        Raises:
            PreconditionViolation: If no principal was supplied, or it is
                neither a Principal nor a valid principal string
        """
        if principal is None or principal == "":
            raise PreconditionViolation("No authenticated principal for this operation")
        if isinstance(principal, str):
            try:
                return Principal.parse(principal)
            except ValueError as e:
                raise PreconditionViolation(str(e)) from e
        if not isinstance(principal, Principal):
            raise PreconditionViolation(
                f"Expected a Principal or principal string, got {type(principal).__name__}"
            )
        return principal

    async def grant(
        self,
        principal: Principal,
        permission: Permission,
        target: AclTarget,
    ) -> None:
        """Grant a permission on a target to a user or role."""
        entry = AclEntry(target=target, principal=principal, permission=permission)
        await self.acl_store.grant([entry])

    async def revoke_all(self, targets: Iterable[AclTarget]) -> int:
        """Remove all entries on the given targets."""
        return await self.acl_store.revoke_all(list(targets))

    async def apply(self, change_set: AclChangeSet) -> None:
        """Apply a change set produced by the grant policy.

        Args:
            change_set: Grants and revocations to apply
        """
        if change_set.is_empty:
            return

        if change_set.grants:
            written = await self.acl_store.grant(change_set.grants)
            logger.debug(
                "Applied ACL grants",
                extra={"requested": len(change_set.grants), "written": written},
            )

        if change_set.revocations:
            removed = await self.acl_store.revoke_all(change_set.revocations)
            logger.debug(
                "Applied ACL revocations",
                extra={"targets": [str(t) for t in change_set.revocations], "removed": removed},
            )

    async def entries_for(self, target: AclTarget) -> list[AclEntry]:
        return await self.acl_store.get_entries(target)

    async def has_permission(
        self,
        principal: Principal,
        permission: Permission,
        target: AclTarget,
        roles: Iterable[str] = (),
    ) -> bool:
        """Check whether a principal holds a permission on a target.

        Args:
            principal: Actor requesting access
            permission: Required permission level
            target: Object being accessed
            roles: Role names held by the actor

        Returns:
            True if access is granted
        """
        entries = await self.acl_store.get_entries(target)
        return entries_grant(entries, principal, permission, roles)
