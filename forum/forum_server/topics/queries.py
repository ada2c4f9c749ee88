"""
Topic query engine.

Paged views over topics built on the content store's range queries:
- Recent topics: last activity inside the recency window
- Unanswered topics: recent topics that hold only their first post
- Branch topics: everything in one branch, paged or not

Listings are not linearizable with lifecycle mutations; a topic moved or
deleted while a page is read may be missing from or present on that page.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..errors import NotFoundError
from ..store.content_store import ContentStore
from ..store.entities import Branch, Topic
from .paging import Page, PageRequest

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_RECENT_WINDOW_MS = 24 * 3600 * 1000


class TopicQueryEngine:
    """Read-only topic listings.

    Example:
        >>> queries = TopicQueryEngine(store, page_size=20)
        >>> page = await queries.get_topics(branch_id, page=1)
        >>> page.total_pages
    """

    def __init__(
        self,
        store: ContentStore,
        page_size: int = DEFAULT_PAGE_SIZE,
        recent_window_ms: int = DEFAULT_RECENT_WINDOW_MS,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.store = store
        self.page_size = page_size
        self.recent_window_ms = recent_window_ms
        self._clock = clock or (lambda: int(time.time() * 1000))

    def _window_start(self) -> int:
        return self._clock() - self.recent_window_ms

    async def get_recent_topics(self, page: int) -> Page[Topic]:
        """Topics active within the recency window, most recent first."""
        request = PageRequest(page=page, size=self.page_size)
        items, total = await self.store.get_topics_active_since(
            self._window_start(), limit=request.size, offset=request.offset
        )
        return Page(items=items, number=request.page, size=request.size, total=total)

    async def get_unanswered_topics(self, page: int) -> Page[Topic]:
        """Recent topics that hold only their first post."""
        request = PageRequest(page=page, size=self.page_size)
        items, total = await self.store.get_topics_active_since(
            self._window_start(),
            limit=request.size,
            offset=request.offset,
            unanswered_only=True,
        )
        return Page(items=items, number=request.page, size=request.size, total=total)

    async def get_topics(
        self,
        branch: Branch | int,
        page: int,
        paging_enabled: bool = True,
    ) -> Page[Topic]:
        """Topics of a branch in listing order.

        Order is sticky first, then announcements, then weight descending,
        then last activity descending, then id ascending.

        Args:
            branch: Branch object, or a branch id to be probed for existence
            page: 1-indexed page number (ignored when paging is disabled)
            paging_enabled: When False, every topic is returned on one page
                whose size equals the total count

        Returns:
            Page of topics

        Raises:
            NotFoundError: If a branch id was given and does not exist
        """
        if isinstance(branch, Branch):
            branch_id = branch.id
        else:
            branch_id = branch
            if not await self.store.branch_exists(branch_id):
                raise NotFoundError("Branch", branch_id)

        if not paging_enabled:
            items, total = await self.store.get_topics_in_branch(branch_id)
            logger.debug("Listed branch without paging", extra={"branch_id": branch_id, "total": total})
            return Page(items=items, number=1, size=total, total=total)

        request = PageRequest(page=page, size=self.page_size)
        items, total = await self.store.get_topics_in_branch(
            branch_id, limit=request.size, offset=request.offset
        )
        return Page(items=items, number=request.page, size=request.size, total=total)

    async def count_topics_in_branch(self, branch_id: int) -> int:
        """Number of topics in a branch.

        Raises:
            NotFoundError: If the branch does not exist
        """
        if not await self.store.branch_exists(branch_id):
            raise NotFoundError("Branch", branch_id)
        return await self.store.count_topics_in_branch(branch_id)
