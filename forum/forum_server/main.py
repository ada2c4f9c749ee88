"""
Forum Server - component wiring.

This module assembles the engine components from configuration:
- Content store (SQLite)
- ACL store (separate SQLite file)
- Security service and grant policy
- Lifecycle and query engines

The controller layer owns one ForumCore per process and calls the engines
on it.

Usage:
    core = ForumCore()
    await core.start()
    topic = await core.lifecycle.create_topic(principal, "Title", "Body", branch_id)

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Both stores are initialized before the engines are usable
    - Engines share one store instance each; they hold no other state
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import Settings
from .security import AclStore, Principal, SecurityService
from .store import ContentStore
from .topics import PermissionGrantPolicy, TopicLifecycleEngine, TopicQueryEngine

logger = logging.getLogger(__name__)

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Forum configuration
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        # Serializes each record with its extra fields
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class ForumCore:
    """Forum engine orchestrator.

    Attributes:
        settings: Forum configuration
        content_store: Content SQLite store
        acl_store: ACL SQLite store
        security: Security service
        policy: Grant policy
        lifecycle: Topic lifecycle engine
        queries: Topic query engine

    Example:
        >>> core = ForumCore(Settings(data_dir="/tmp/forum"))
        >>> await core.start()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Build the components.

        Args:
            settings: Optional configuration (loaded from env if not provided)
        """
        self.settings = settings or Settings()

        self.content_store = ContentStore(
            self.settings.content_db_path,
            wal_mode=self.settings.wal_mode,
            busy_timeout_ms=self.settings.busy_timeout_ms,
            cache_size_pages=self.settings.cache_size_pages,
        )
        self.acl_store = AclStore(
            self.settings.acl_db_path,
            wal_mode=self.settings.wal_mode,
            busy_timeout_ms=self.settings.busy_timeout_ms,
        )
        self.security = SecurityService(self.acl_store)
        self.policy = PermissionGrantPolicy(Principal.parse(self.settings.admin_principal))
        self.lifecycle = TopicLifecycleEngine(self.content_store, self.security, self.policy)
        self.queries = TopicQueryEngine(
            self.content_store,
            page_size=self.settings.page_size,
            recent_window_ms=self.settings.recent_window_ms,
        )
        self._started = False

    async def start(self) -> None:
        """Initialize both stores."""
        if self._started:
            logger.warning("Forum core already started")
            return

        self.settings.log_config()
        await self.content_store.initialize()
        await self.acl_store.initialize()
        self._started = True
        logger.info("Forum core started", extra={"data_dir": self.settings.data_dir})

    @property
    def started(self) -> bool:
        return self._started
