"""
Topic engines for the forum server.

This module handles:
- Topic lifecycle (create, reply, update, move, delete)
- Topic listings (recent, unanswered, per branch)
- The grant policy mapping lifecycle events to ACL changes
"""

from .lifecycle import TopicLifecycleEngine, TopicUpdate
from .paging import Page, PageRequest
from .policy import AclChangeSet, PermissionGrantPolicy
from .queries import TopicQueryEngine

__all__ = [
    "TopicLifecycleEngine",
    "TopicUpdate",
    "Page",
    "PageRequest",
    "AclChangeSet",
    "PermissionGrantPolicy",
    "TopicQueryEngine",
]
