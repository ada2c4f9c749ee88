"""
Content store module for the forum server.

This module handles:
- Section, Branch, Topic and Post entities
- The content SQLite store and its write transactions
- Paged range queries returning (items, total_count)
"""

from .content_store import ContentStore, ContentTransaction
from .entities import Branch, Post, Section, Topic

__all__ = [
    "ContentStore",
    "ContentTransaction",
    "Branch",
    "Post",
    "Section",
    "Topic",
]
