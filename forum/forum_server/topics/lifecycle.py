"""
Topic lifecycle engine.

Creates, answers, updates, moves and deletes topics. Each operation:
1. Checks that an acting principal was supplied
2. Opens one content-store transaction
3. Loads and validates the entities it needs on that transaction
   (NotFoundError otherwise, rolling back with nothing written)
4. Mutates and persists every touched entity before commit
5. Applies the ACL change set from the grant policy, after commit

Invariants:
    - branch.topic_count equals the number of topics in the branch
    - No write happens before all referenced ids have been resolved
    - ACL changes are never applied before the content commit
    - Move changes branch ownership only, never ACL entries

How to change safely:
    - Route every ACL change through PermissionGrantPolicy
    - Keep all reads and writes of an operation inside a single
      store.transaction(); a load outside it races concurrent writers
    - Do not catch store errors; callers treat them as "did not complete"
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import BaseModel

from ..errors import NotFoundError
from ..security.acl import Principal
from ..security.context import SecurityService
from ..store.content_store import ContentStore, ContentTransaction
from ..store.entities import Branch, Post, Topic
from .policy import AclChangeSet, PermissionGrantPolicy

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TopicUpdate(BaseModel):
    """Optional topic settings for update_topic.

    Every field defaults to None, meaning "leave unchanged".
    """

    weight: int | None = None
    sticky: bool | None = None
    announcement: bool | None = None
    notify_on_answers: bool | None = None

    model_config = {"frozen": True, "extra": "forbid"}

    def apply_to(self, topic: Topic) -> list[str]:
        """Set the provided fields on a topic.

        Returns:
            Names of the fields that were set
        """
        changes = self.model_dump(exclude_none=True)
        for name, value in changes.items():
            setattr(topic, name, value)
        return list(changes)


class TopicLifecycleEngine:
    """Orchestrates topic mutations across the content and ACL stores.

    Thread safety:
        The engine holds no mutable state of its own; concurrent calls are
        serialized by the content store's transactions.

    Example:
        >>> engine = TopicLifecycleEngine(store, security, policy)
        >>> topic = await engine.create_topic(
        ...     Principal.user("alice"), "Hello", "First post", branch_id=1
        ... )
    """

    def __init__(
        self,
        store: ContentStore,
        security: SecurityService,
        policy: PermissionGrantPolicy,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Content store
            security: Security service for principals and ACL writes
            policy: Grant policy deciding ACL changes
            clock: Returns the current time in Unix ms
        """
        self.store = store
        self.security = security
        self.policy = policy
        self._clock = clock or _now_ms

    async def get_topic(self, topic_id: int) -> Topic:
        """Get a topic with its posts.

        Raises:
            NotFoundError: If the topic does not exist
        """
        if not await self.store.topic_exists(topic_id):
            raise NotFoundError("Topic", topic_id)

        topic = await self.store.get_topic(topic_id)
        if topic is None:
            # Deleted between the probe and the load
            raise NotFoundError("Topic", topic_id)
        return topic

    def _load_branch(self, tx: ContentTransaction, branch_id: int) -> Branch:
        branch = tx.get_branch(branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    def _load_topic(self, tx: ContentTransaction, topic_id: int) -> Topic:
        topic = tx.get_topic(topic_id)
        if topic is None:
            raise NotFoundError("Topic", topic_id)
        return topic

    async def create_topic(
        self,
        principal: Principal | str | None,
        title: str,
        body_text: str,
        branch_id: int,
        notify_on_answers: bool = False,
    ) -> Topic:
        """Create a topic with its first post in a branch.

        Args:
            principal: Acting principal, becomes the topic starter
            title: Topic title
            body_text: Content of the first post
            branch_id: Branch that will own the topic
            notify_on_answers: Whether the starter wants reply notifications

        Returns:
            The stored topic

        Raises:
            PreconditionViolation: If no principal was supplied
            NotFoundError: If the branch does not exist
        """
        actor = self.security.require_principal(principal)

        now = self._clock()
        with self.store.transaction() as tx:
            branch = self._load_branch(tx, branch_id)
            topic = Topic(
                title=title,
                starter=str(actor),
                branch_id=branch.id,
                created_at=now,
                modified_at=now,
                notify_on_answers=notify_on_answers,
            )
            topic.add_post(Post(author=str(actor), content=body_text, created_at=now))

            tx.insert_topic(topic)
            branch.add_topic(topic)
            tx.update_branch(branch)

        logger.info(
            "Created topic",
            extra={"topic_id": topic.id, "branch_id": branch.id, "starter": topic.starter},
        )

        await self._apply_acl("create_topic", topic.id, self.policy.topic_created(actor, topic))
        return topic

    async def reply_to_topic(
        self,
        principal: Principal | str | None,
        topic_id: int,
        answer_body: str,
    ) -> Post:
        """Append a reply to a topic.

        The topic's own ACL entries are left alone; only the new post gets
        grants.

        Raises:
            PreconditionViolation: If no principal was supplied
            NotFoundError: If the topic does not exist
        """
        actor = self.security.require_principal(principal)

        with self.store.transaction() as tx:
            topic = self._load_topic(tx, topic_id)
            post = Post(author=str(actor), content=answer_body, created_at=self._clock())
            topic.add_post(post)
            tx.update_topic(topic)

        logger.info(
            "Replied to topic",
            extra={"topic_id": topic.id, "post_id": post.id, "author": post.author},
        )

        await self._apply_acl("reply_to_topic", topic.id, self.policy.post_created(actor, post))
        return post

    async def update_topic(
        self,
        principal: Principal | str | None,
        topic_id: int,
        title: str,
        body_text: str,
        options: TopicUpdate | None = None,
    ) -> Topic:
        """Edit a topic's title, first post and optional settings.

        Args:
            principal: Acting principal
            topic_id: Topic to edit
            title: New title
            body_text: New content of the first post
            options: Weight/sticky/announcement/notify changes; None leaves
                all of them unchanged

        Returns:
            The updated topic

        Raises:
            PreconditionViolation: If no principal was supplied
            NotFoundError: If the topic does not exist
        """
        actor = self.security.require_principal(principal)

        with self.store.transaction() as tx:
            topic = self._load_topic(tx, topic_id)
            topic.title = title
            first_post = topic.first_post
            first_post.content = body_text
            first_post.modified_at = self._clock()
            changed = options.apply_to(topic) if options else []

            tx.update_topic(topic)
            tx.update_post(first_post)

        logger.info(
            "Updated topic",
            extra={"topic_id": topic.id, "editor": str(actor), "options": changed},
        )

        await self._apply_acl("update_topic", topic.id, self.policy.topic_updated(topic))
        return topic

    async def delete_topic(self, principal: Principal | str | None, topic_id: int) -> Branch:
        """Delete a topic, its posts, and all ACL entries on them.

        Returns:
            The branch the topic was removed from

        Raises:
            PreconditionViolation: If no principal was supplied
            NotFoundError: If the topic does not exist
        """
        actor = self.security.require_principal(principal)

        with self.store.transaction() as tx:
            topic = self._load_topic(tx, topic_id)
            branch = self._load_branch(tx, topic.branch_id)
            branch.remove_topic(topic)

            tx.delete_topic(topic.id)
            tx.update_branch(branch)

        logger.info(
            "Deleted topic",
            extra={"topic_id": topic.id, "branch_id": branch.id, "deleted_by": str(actor)},
        )

        await self._apply_acl("delete_topic", topic.id, self.policy.topic_deleted(topic))
        return branch

    async def move_topic(
        self,
        principal: Principal | str | None,
        topic_id: int,
        target_branch_id: int,
    ) -> Topic:
        """Move a topic to another branch.

        ACL entries on the topic and its posts are not touched. Moving a
        topic into the branch it is already in does nothing.

        Raises:
            PreconditionViolation: If no principal was supplied
            NotFoundError: If the topic or the target branch does not exist
        """
        actor = self.security.require_principal(principal)

        with self.store.transaction() as tx:
            topic = self._load_topic(tx, topic_id)
            target = self._load_branch(tx, target_branch_id)

            if topic.branch_id == target.id:
                logger.debug("Topic already in target branch", extra={"topic_id": topic.id})
                return topic

            source = self._load_branch(tx, topic.branch_id)
            source.remove_topic(topic)
            target.add_topic(topic)

            tx.set_topic_branch(topic.id, target.id)
            tx.update_branch(source)
            tx.update_branch(target)

        logger.info(
            "Moved topic",
            extra={
                "topic_id": topic.id,
                "from_branch": source.id,
                "to_branch": target.id,
                "moved_by": str(actor),
            },
        )

        await self._apply_acl(
            "move_topic", topic.id, self.policy.topic_moved(topic, source.id, target.id)
        )
        return topic

    async def _apply_acl(self, operation: str, topic_id: int | None, changes: AclChangeSet) -> None:
        """Apply ACL changes after the content commit.

        A failure here leaves content committed without matching ACL
        entries. It is logged with the pending change set and re-raised.
        """
        try:
            await self.security.apply(changes)
        except Exception:
            logger.error(
                "ACL update failed after content commit",
                extra={"operation": operation, "topic_id": topic_id, "pending": changes.to_dict()},
                exc_info=True,
            )
            raise
