"""
Integration tests for TopicQueryEngine over SQLite.

Tests cover:
- Branch listings with and without paging
- Recent and unanswered listings inside the recency window
- Not-found handling for branch ids
"""

import pytest

from forum.forum_server.errors import NotFoundError
from forum.forum_server.security import Principal
from forum.forum_server.topics import TopicUpdate

ALICE = Principal.user("alice")
BOB = Principal.user("bob")

HOUR_MS = 3600 * 1000


class TestGetTopics:
    """Tests for get_topics."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1, 7])
    async def test_unpaged_returns_whole_branch(self, engine, queries, branch, count):
        """Paging disabled returns every topic on one page."""
        for i in range(count):
            await engine.create_topic(ALICE, f"t{i}", "body", branch.id)

        page = await queries.get_topics(branch.id, 5, paging_enabled=False)

        assert len(page.items) == count
        assert page.total == count
        assert page.size == count
        assert page.number == 1
        assert page.total_pages == 1

    @pytest.mark.asyncio
    async def test_paged(self, engine, queries, branch, clock):
        """Pages split the listing with totals attached."""
        for i in range(7):
            clock.advance(1000)
            await engine.create_topic(ALICE, f"t{i}", "body", branch.id)

        first = await queries.get_topics(branch, 1)
        last = await queries.get_topics(branch, 3)
        beyond = await queries.get_topics(branch, 4)

        assert [t.title for t in first.items] == ["t6", "t5", "t4"]
        assert first.total == 7
        assert first.total_pages == 3
        assert [t.title for t in last.items] == ["t0"]
        assert beyond.items == []
        assert beyond.total == 7

    @pytest.mark.asyncio
    async def test_listing_order(self, engine, queries, branch, clock):
        """Sticky before announcements before weight before recency."""
        plain = await engine.create_topic(ALICE, "plain", "body", branch.id)
        clock.advance(1000)
        newer = await engine.create_topic(ALICE, "newer", "body", branch.id)
        heavy = await engine.create_topic(ALICE, "heavy", "body", branch.id)
        await engine.update_topic(ALICE, heavy.id, "heavy", "body", TopicUpdate(weight=2))
        announcement = await engine.create_topic(ALICE, "ann", "body", branch.id)
        await engine.update_topic(
            ALICE, announcement.id, "ann", "body", TopicUpdate(announcement=True)
        )
        sticky = await engine.create_topic(ALICE, "sticky", "body", branch.id)
        await engine.update_topic(ALICE, sticky.id, "sticky", "body", TopicUpdate(sticky=True))

        page = await queries.get_topics(branch.id, 1, paging_enabled=False)

        assert [t.id for t in page.items] == [
            sticky.id,
            announcement.id,
            heavy.id,
            newer.id,
            plain.id,
        ]

    @pytest.mark.asyncio
    async def test_unknown_branch_id(self, queries):
        """Unknown branch ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await queries.get_topics(4242, 1)
        with pytest.raises(NotFoundError):
            await queries.get_topics(4242, 1, paging_enabled=False)

    @pytest.mark.asyncio
    async def test_count_topics_in_branch(self, engine, queries, branch):
        await engine.create_topic(ALICE, "a", "body", branch.id)
        await engine.create_topic(ALICE, "b", "body", branch.id)

        assert await queries.count_topics_in_branch(branch.id) == 2
        with pytest.raises(NotFoundError):
            await queries.count_topics_in_branch(4242)


class TestRecentTopics:
    """Tests for recent and unanswered listings."""

    @pytest.mark.asyncio
    async def test_recent_window(self, engine, queries, branch, clock):
        """Only topics active in the last 24 hours are listed."""
        old = await engine.create_topic(ALICE, "old", "body", branch.id)
        clock.advance(30 * HOUR_MS)
        fresh = await engine.create_topic(ALICE, "fresh", "body", branch.id)

        page = await queries.get_recent_topics(1)

        assert [t.id for t in page.items] == [fresh.id]
        assert page.total == 1

        # A reply brings the old topic back into the window
        clock.advance(1000)
        await engine.reply_to_topic(BOB, old.id, "bump")

        page = await queries.get_recent_topics(1)
        assert [t.id for t in page.items] == [old.id, fresh.id]

    @pytest.mark.asyncio
    async def test_unanswered(self, engine, queries, branch, clock):
        """Topics with replies drop out of the unanswered listing."""
        answered = await engine.create_topic(ALICE, "answered", "body", branch.id)
        clock.advance(1000)
        lonely = await engine.create_topic(ALICE, "lonely", "body", branch.id)
        await engine.reply_to_topic(BOB, answered.id, "reply")

        page = await queries.get_unanswered_topics(1)

        assert [t.id for t in page.items] == [lonely.id]
        assert all(t.unanswered for t in page.items)

    @pytest.mark.asyncio
    async def test_recent_pages(self, engine, queries, branch, clock):
        """Recent listing pages with a fixed size."""
        for i in range(5):
            clock.advance(1000)
            await engine.create_topic(ALICE, f"t{i}", "body", branch.id)

        second = await queries.get_recent_topics(2)

        assert [t.title for t in second.items] == ["t1", "t0"]
        assert second.total == 5
        assert second.total_pages == 2
        assert second.has_previous
        assert not second.has_next

    @pytest.mark.asyncio
    async def test_page_zero_is_first_page(self, engine, queries, branch):
        await engine.create_topic(ALICE, "t", "body", branch.id)

        page = await queries.get_recent_topics(0)

        assert page.number == 1
        assert len(page.items) == 1
