"""
Content SQLite store for the forum.

This module manages the SQLite database that stores:
- Sections and the branches they group
- Branches with their denormalized topic count
- Topics with their ordering flags and last-activity time
- Posts belonging to topics

Writes go through a ContentTransaction so that every entity mutated by one
lifecycle operation commits or rolls back together. Reads open their own
connection and see committed data only.

Invariants:
    - One SQLite file holds all content
    - All writes of one operation share one BEGIN IMMEDIATE transaction
    - branches.topic_count is written from Branch.topic_count on update
    - Entities a transaction writes are read on that same transaction
    - Posts are deleted before their topic (foreign keys are enforced)

How to change safely:
    - Schema migrations must be backward compatible
    - Keep listing ORDER BY clauses aligned with the query engine contract
    - Use transactions for all write operations

Table schema:
    sections:
        - id INTEGER PRIMARY KEY
        - name TEXT
        - position INTEGER

    branches:
        - id INTEGER PRIMARY KEY
        - section_id INTEGER (nullable)
        - name TEXT
        - description TEXT
        - topic_count INTEGER

    topics:
        - id INTEGER PRIMARY KEY
        - branch_id INTEGER REFERENCES branches(id)
        - title TEXT
        - starter TEXT
        - weight INTEGER
        - sticky INTEGER
        - announcement INTEGER
        - notify_on_answers INTEGER
        - created_at INTEGER (Unix ms)
        - modified_at INTEGER (Unix ms, last post time)

    posts:
        - id INTEGER PRIMARY KEY
        - topic_id INTEGER REFERENCES topics(id)
        - author TEXT
        - content TEXT
        - created_at INTEGER (Unix ms)
        - modified_at INTEGER (Unix ms, nullable)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .entities import Branch, Post, Section, Topic

logger = logging.getLogger(__name__)

# ORDER BY for branch listings: sticky, announcements, weight, recency, id
BRANCH_LISTING_ORDER = (
    "t.sticky DESC, t.announcement DESC, t.weight DESC, t.modified_at DESC, t.id ASC"
)
RECENT_LISTING_ORDER = "t.modified_at DESC, t.id ASC"


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        topic_id=row["topic_id"],
        author=row["author"],
        content=row["content"],
        created_at=row["created_at"],
        modified_at=row["modified_at"],
    )


def _row_to_topic(row: sqlite3.Row, posts: list[Post]) -> Topic:
    return Topic(
        id=row["id"],
        branch_id=row["branch_id"],
        title=row["title"],
        starter=row["starter"],
        weight=row["weight"],
        sticky=bool(row["sticky"]),
        announcement=bool(row["announcement"]),
        notify_on_answers=bool(row["notify_on_answers"]),
        created_at=row["created_at"],
        modified_at=row["modified_at"],
        posts=posts,
    )


def _fetch_posts(conn: sqlite3.Connection, topic_ids: list[int]) -> dict[int, list[Post]]:
    if not topic_ids:
        return {}

    placeholders = ",".join("?" for _ in topic_ids)
    cursor = conn.execute(
        f"SELECT * FROM posts WHERE topic_id IN ({placeholders}) ORDER BY topic_id, id",
        topic_ids,
    )

    by_topic: dict[int, list[Post]] = {}
    for row in cursor.fetchall():
        by_topic.setdefault(row["topic_id"], []).append(_row_to_post(row))
    return by_topic


def _fetch_topic(conn: sqlite3.Connection, topic_id: int) -> Topic | None:
    row = conn.execute("SELECT * FROM topics WHERE id = ?", (topic_id,)).fetchone()
    if not row:
        return None
    posts = _fetch_posts(conn, [topic_id])
    return _row_to_topic(row, posts.get(topic_id, []))


def _fetch_branch(conn: sqlite3.Connection, branch_id: int) -> Branch | None:
    row = conn.execute("SELECT * FROM branches WHERE id = ?", (branch_id,)).fetchone()
    if not row:
        return None

    topic_ids = [
        r["id"]
        for r in conn.execute(
            "SELECT id FROM topics WHERE branch_id = ? ORDER BY id", (branch_id,)
        )
    ]
    return Branch(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        section_id=row["section_id"],
        topic_ids=topic_ids,
        topic_count=row["topic_count"],
    )


class ContentTransaction:
    """Reads and writes sharing one open SQLite transaction.

    Obtained from ContentStore.transaction(); never constructed directly.
    Stored ids are assigned back onto the entities passed in. Entities that
    an operation mutates must be loaded through get_branch/get_topic on the
    same transaction, so that no write is computed from a stale read.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self.writes = 0

    def get_branch(self, branch_id: int) -> Branch | None:
        return _fetch_branch(self._conn, branch_id)

    def get_topic(self, topic_id: int) -> Topic | None:
        return _fetch_topic(self._conn, topic_id)

    def insert_topic(self, topic: Topic) -> Topic:
        """Insert a topic together with the posts it already holds."""
        cursor = self._conn.execute(
            """
            INSERT INTO topics (branch_id, title, starter, weight, sticky, announcement,
                                notify_on_answers, created_at, modified_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                topic.branch_id,
                topic.title,
                topic.starter,
                topic.weight,
                int(topic.sticky),
                int(topic.announcement),
                int(topic.notify_on_answers),
                topic.created_at,
                topic.modified_at,
            ),
        )
        topic.id = cursor.lastrowid
        self.writes += 1

        for post in topic.posts:
            post.topic_id = topic.id
            self.insert_post(post)

        return topic

    def insert_post(self, post: Post) -> Post:
        if post.topic_id is None:
            raise ValueError("Post must belong to a stored topic")
        cursor = self._conn.execute(
            """
            INSERT INTO posts (topic_id, author, content, created_at, modified_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (post.topic_id, post.author, post.content, post.created_at, post.modified_at),
        )
        post.id = cursor.lastrowid
        self.writes += 1
        return post

    def update_topic(self, topic: Topic) -> None:
        """Write topic columns and insert any posts not stored yet.

        Branch ownership is not written here; see set_topic_branch.
        """
        self._conn.execute(
            """
            UPDATE topics SET title = ?, weight = ?, sticky = ?,
                              announcement = ?, notify_on_answers = ?, modified_at = ?
            WHERE id = ?
            """,
            (
                topic.title,
                topic.weight,
                int(topic.sticky),
                int(topic.announcement),
                int(topic.notify_on_answers),
                topic.modified_at,
                topic.id,
            ),
        )
        self.writes += 1

        for post in topic.posts:
            if post.id is None:
                post.topic_id = topic.id
                self.insert_post(post)

    def set_topic_branch(self, topic_id: int, branch_id: int) -> None:
        self._conn.execute("UPDATE topics SET branch_id = ? WHERE id = ?", (branch_id, topic_id))
        self.writes += 1

    def update_post(self, post: Post) -> None:
        self._conn.execute(
            "UPDATE posts SET content = ?, modified_at = ? WHERE id = ?",
            (post.content, post.modified_at, post.id),
        )
        self.writes += 1

    def delete_topic(self, topic_id: int) -> bool:
        """Delete a topic and its posts.

        Returns:
            True if the topic row was deleted
        """
        self._conn.execute("DELETE FROM posts WHERE topic_id = ?", (topic_id,))
        cursor = self._conn.execute("DELETE FROM topics WHERE id = ?", (topic_id,))
        self.writes += 1
        return cursor.rowcount > 0

    def update_branch(self, branch: Branch) -> None:
        self._conn.execute(
            """
            UPDATE branches SET name = ?, description = ?, section_id = ?, topic_count = ?
            WHERE id = ?
            """,
            (branch.name, branch.description, branch.section_id, branch.topic_count, branch.id),
        )
        self.writes += 1


class ContentStore:
    """SQLite store for forum content.

    This class provides:
    - Section and branch creation for setup
    - Existence probes and loads for branches and topics
    - Transactions for lifecycle writes
    - Paged range queries returning (items, total_count)

    Thread safety:
        Each database connection is created per-operation.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = ContentStore("/var/lib/forum/content.db")
        >>> await store.initialize()
        >>> branch = await store.create_branch("General")
        >>> with store.transaction() as tx:
        ...     tx.insert_topic(topic)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the content store.

        Args:
            db_path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS branches (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                section_id INTEGER REFERENCES sections(id),
                name TEXT NOT NULL,
                description TEXT,
                topic_count INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_branches_section ON branches(section_id);

            CREATE TABLE IF NOT EXISTS topics (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                branch_id INTEGER NOT NULL REFERENCES branches(id),
                title TEXT NOT NULL,
                starter TEXT NOT NULL,
                weight INTEGER NOT NULL DEFAULT 0,
                sticky INTEGER NOT NULL DEFAULT 0,
                announcement INTEGER NOT NULL DEFAULT 0,
                notify_on_answers INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                modified_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_topics_branch ON topics(branch_id);
            CREATE INDEX IF NOT EXISTS idx_topics_modified ON topics(modified_at DESC);

            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                topic_id INTEGER NOT NULL REFERENCES topics(id),
                author TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                modified_at INTEGER
            );

            CREATE INDEX IF NOT EXISTS idx_posts_topic ON posts(topic_id, id);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        with self._get_connection() as conn:
            self._create_schema(conn)
        logger.info(f"Initialized content store: {self.db_path}")

    @contextmanager
    def transaction(self) -> Iterator[ContentTransaction]:
        """Open a write transaction.

        Commits when the block exits normally, rolls back and re-raises
        otherwise.

        Yields:
            ContentTransaction bound to the open transaction
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            tx = ContentTransaction(conn)
            try:
                yield tx
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug("Committed content transaction", extra={"writes": tx.writes})

    # ------------------------------------------------------------------
    # Sections and branches
    # ------------------------------------------------------------------

    async def create_section(self, name: str, position: int = 0) -> Section:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO sections (name, position) VALUES (?, ?)",
                (name, position),
            )
            return Section(id=cursor.lastrowid, name=name, position=position)

    async def get_section(self, section_id: int) -> Section | None:
        """Get a section with the ids of its branches in creation order."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM sections WHERE id = ?", (section_id,)).fetchone()
            if not row:
                return None

            branch_ids = [
                r["id"]
                for r in conn.execute(
                    "SELECT id FROM branches WHERE section_id = ? ORDER BY id", (section_id,)
                )
            ]
            return Section(
                id=row["id"], name=row["name"], position=row["position"], branch_ids=branch_ids
            )

    async def create_branch(
        self,
        name: str,
        section_id: int | None = None,
        description: str | None = None,
    ) -> Branch:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO branches (section_id, name, description) VALUES (?, ?, ?)",
                (section_id, name, description),
            )
            branch_id = cursor.lastrowid

        logger.debug("Created branch", extra={"branch_id": branch_id, "section_id": section_id})
        return Branch(id=branch_id, name=name, description=description, section_id=section_id)

    async def branch_exists(self, branch_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT 1 FROM branches WHERE id = ?", (branch_id,))
            return cursor.fetchone() is not None

    async def get_branch(self, branch_id: int) -> Branch | None:
        """Get a branch by ID.

        The stored topic_count is returned as written; topic_ids come from
        the topics table.

        Args:
            branch_id: Branch identifier

        Returns:
            Branch or None if not found
        """
        with self._get_connection() as conn:
            return _fetch_branch(conn, branch_id)

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    async def topic_exists(self, topic_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT 1 FROM topics WHERE id = ?", (topic_id,))
            return cursor.fetchone() is not None

    async def get_topic(self, topic_id: int) -> Topic | None:
        """Get a topic with all of its posts.

        Args:
            topic_id: Topic identifier

        Returns:
            Topic or None if not found
        """
        with self._get_connection() as conn:
            return _fetch_topic(conn, topic_id)

    async def count_topics_in_branch(self, branch_id: int) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM topics WHERE branch_id = ?", (branch_id,))
            return cursor.fetchone()[0]

    async def get_topics_in_branch(
        self,
        branch_id: int,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[Topic], int]:
        """Get a range of topics in a branch in listing order.

        Args:
            branch_id: Branch identifier
            limit: Maximum topics to return (None for all)
            offset: Pagination offset

        Returns:
            Tuple of (topics, total topics in branch)
        """
        return self._query_topics(
            where="t.branch_id = ?",
            params=[branch_id],
            order_by=BRANCH_LISTING_ORDER,
            limit=limit,
            offset=offset,
        )

    async def get_topics_active_since(
        self,
        since_ms: int,
        limit: int | None = None,
        offset: int = 0,
        unanswered_only: bool = False,
    ) -> tuple[list[Topic], int]:
        """Get topics whose last activity is at or after a timestamp.

        Args:
            since_ms: Lower bound on last activity (Unix ms)
            limit: Maximum topics to return (None for all)
            offset: Pagination offset
            unanswered_only: Only topics holding exactly one post

        Returns:
            Tuple of (topics, total matching topics)
        """
        where = "t.modified_at >= ?"
        if unanswered_only:
            where += " AND (SELECT COUNT(*) FROM posts p WHERE p.topic_id = t.id) = 1"

        return self._query_topics(
            where=where,
            params=[since_ms],
            order_by=RECENT_LISTING_ORDER,
            limit=limit,
            offset=offset,
        )

    def _query_topics(
        self,
        where: str,
        params: list[Any],
        order_by: str,
        limit: int | None,
        offset: int,
    ) -> tuple[list[Topic], int]:
        with self._get_connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM topics t WHERE {where}", params
            ).fetchone()[0]

            query = f"SELECT t.* FROM topics t WHERE {where} ORDER BY {order_by}"
            query_params = list(params)
            if limit is not None:
                query += " LIMIT ? OFFSET ?"
                query_params.extend([limit, offset])
            elif offset:
                query += " LIMIT -1 OFFSET ?"
                query_params.append(offset)

            rows = conn.execute(query, query_params).fetchall()
            posts = _fetch_posts(conn, [row["id"] for row in rows])

            return [_row_to_topic(row, posts.get(row["id"], [])) for row in rows], total

    async def get_stats(self) -> dict[str, int]:
        """Get row counts per table."""
        with self._get_connection() as conn:
            stats = {}
            for table in ("sections", "branches", "topics", "posts"):
                stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            return stats
