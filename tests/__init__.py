"""
Forum Server Test Suite.

This package contains:
- unit/: Unit tests (ACL model, stores, policy, config, paging)
- integration/: Integration tests (engines over real SQLite files)
"""
