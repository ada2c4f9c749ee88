"""
Forum Server - topic lifecycle and permission-grant engine.

This package implements the core of a discussion-forum backend:
- Sections, Branches, Topics and Posts as the content model
- SQLite content store with per-operation transactions
- Per-object ACL entries kept in a separate SQLite store
- Lifecycle and query engines driving both stores

Architecture:
    ┌─────────────┐     ┌──────────────────────┐     ┌───────────────┐
    │  Controller │────▶│ TopicLifecycleEngine │────▶│ ContentStore  │
    │  (caller)   │     │ TopicQueryEngine     │     │   (SQLite)    │
    └─────────────┘     └──────────┬───────────┘     └───────────────┘
                                   │ after commit
                                   ▼
                        ┌──────────────────────┐     ┌───────────────┐
                        │ PermissionGrantPolicy│────▶│ SecurityService│
                        └──────────────────────┘     │ + AclStore    │
                                                     └───────────────┘

Invariants:
    - branch.topic_count always equals the number of topics in the branch
    - A topic belongs to exactly one branch (by branch_id)
    - ACL changes are applied only after the content transaction commits
    - Every mutating operation requires an explicit acting principal

How to change safely:
    - Keep ACL grants idempotent so they can be replayed after a crash
    - New lifecycle operations must go through PermissionGrantPolicy
    - Schema changes to either SQLite store must be backward compatible
"""

from ._version import __version__

__all__ = ["__version__"]
