"""
Security module for the forum server.

This module handles:
- Principals, permissions and ACL entries
- The ACL SQLite store (separate from content)
- The security service used by the engines

Invariants:
    - ACL grants are idempotent
    - The acting principal is always passed explicitly
"""

from .acl import AclEntry, AclTarget, Permission, Principal
from .acl_store import AclStore
from .context import SecurityService

__all__ = [
    "AclEntry",
    "AclTarget",
    "Permission",
    "Principal",
    "AclStore",
    "SecurityService",
]
