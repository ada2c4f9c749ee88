"""
ACL entry SQLite store.

This module persists ACL entries for forum objects. It lives in its own
database file, separate from the content store, so that it behaves like an
independent authorization subsystem: content transactions never include
ACL writes.

Invariants:
    - Grants are idempotent (same key granted twice stores one row)
    - Revocation removes every entry on a target, whatever the principal
    - Each call is its own transaction

How to change safely:
    - Keep the primary key stable; repair sweeps rely on replaying grants
    - Use transactions for all multi-statement operations

Table schema:
    acl_entries:
        - target_kind TEXT
        - target_id INTEGER
        - principal TEXT
        - permission TEXT
        - granted_at INTEGER (Unix ms)
        - PRIMARY KEY (target_kind, target_id, principal, permission)
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from .acl import AclEntry, AclTarget

logger = logging.getLogger(__name__)


class AclStore:
    """SQLite store for ACL entries.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = AclStore("/var/lib/forum/acl.db")
        >>> await store.initialize()
        >>> await store.grant(entry)
    """

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the ACL schema if it does not exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS acl_entries (
                    target_kind TEXT NOT NULL,
                    target_id INTEGER NOT NULL,
                    principal TEXT NOT NULL,
                    permission TEXT NOT NULL,
                    granted_at INTEGER NOT NULL,
                    PRIMARY KEY (target_kind, target_id, principal, permission)
                );

                CREATE INDEX IF NOT EXISTS idx_acl_principal ON acl_entries(principal);
            """)
        logger.info(f"Initialized ACL store: {self.db_path}")

    async def grant(self, entries: Iterable[AclEntry]) -> int:
        """Store ACL entries, ignoring ones that already exist.

        Args:
            entries: Entries to store

        Returns:
            Number of entries newly written
        """
        now = int(time.time() * 1000)
        written = 0

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for entry in entries:
                    cursor = conn.execute(
                        """
                        INSERT OR IGNORE INTO acl_entries
                        (target_kind, target_id, principal, permission, granted_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (*entry.key, now),
                    )
                    written += cursor.rowcount
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return written

    async def revoke_all(self, targets: Iterable[AclTarget]) -> int:
        """Remove every entry on the given targets.

        Args:
            targets: Objects whose entries are removed

        Returns:
            Number of entries removed
        """
        removed = 0

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for target in targets:
                    cursor = conn.execute(
                        "DELETE FROM acl_entries WHERE target_kind = ? AND target_id = ?",
                        (target.kind, target.id),
                    )
                    removed += cursor.rowcount
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return removed

    async def get_entries(self, target: AclTarget) -> list[AclEntry]:
        """Get all entries on a target."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT target_kind, target_id, principal, permission FROM acl_entries
                WHERE target_kind = ? AND target_id = ?
                ORDER BY principal, permission
                """,
                (target.kind, target.id),
            )
            return [
                AclEntry.from_row(
                    row["target_kind"], row["target_id"], row["principal"], row["permission"]
                )
                for row in cursor.fetchall()
            ]

    async def count_entries(self) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM acl_entries")
            return cursor.fetchone()[0]
