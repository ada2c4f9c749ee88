"""
Content entities for the forum.

Sections own Branches, Branches own Topics, Topics own Posts. Ownership is
expressed with id fields (topic.branch_id, post.topic_id) rather than live
object back-references, so the graph has no cycles and each entity can be
loaded and persisted on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..security.acl import AclTarget


@dataclass
class Post:
    """A single message within a topic.

    Attributes:
        author: Principal string of the author
        content: Body text
        created_at: Creation timestamp (Unix ms)
        modified_at: Last edit timestamp (Unix ms)
        id: Post identifier (None until stored)
        topic_id: Owning topic (None until stored)
    """

    author: str
    content: str
    created_at: int
    modified_at: int | None = None
    id: int | None = None
    topic_id: int | None = None

    @property
    def acl_target(self) -> AclTarget:
        if self.id is None:
            raise ValueError("Post has not been stored yet")
        return AclTarget(kind="post", id=self.id)


@dataclass
class Topic:
    """A discussion thread.

    The first post is created together with the topic and is edited with
    the topic's title and flags as one unit. Later posts are append-only.

    Attributes:
        title: Topic title
        starter: Principal string of the creator
        branch_id: Owning branch
        created_at: Creation timestamp (Unix ms)
        modified_at: Time of the last post (Unix ms)
        posts: Ordered posts, first post first
        weight: Sort priority
        sticky: Pinned at the top of the branch listing
        announcement: Shown as an announcement
        notify_on_answers: Starter wants notifications on replies
        id: Topic identifier (None until stored)
    """

    title: str
    starter: str
    branch_id: int
    created_at: int
    modified_at: int
    posts: list[Post] = field(default_factory=list)
    weight: int = 0
    sticky: bool = False
    announcement: bool = False
    notify_on_answers: bool = False
    id: int | None = None

    @property
    def first_post(self) -> Post:
        if not self.posts:
            raise ValueError(f"Topic {self.id} has no posts")
        return self.posts[0]

    @property
    def last_post(self) -> Post:
        if not self.posts:
            raise ValueError(f"Topic {self.id} has no posts")
        return self.posts[-1]

    @property
    def post_count(self) -> int:
        return len(self.posts)

    @property
    def unanswered(self) -> bool:
        """True when only the first post is present."""
        return len(self.posts) == 1

    @property
    def acl_target(self) -> AclTarget:
        if self.id is None:
            raise ValueError("Topic has not been stored yet")
        return AclTarget(kind="topic", id=self.id)

    def add_post(self, post: Post) -> None:
        """Append a post and advance the last-activity time."""
        post.topic_id = self.id
        self.posts.append(post)
        self.modified_at = max(self.modified_at, post.created_at)


@dataclass
class Branch:
    """A forum sub-board holding topics.

    Attributes:
        name: Branch name
        description: Optional description
        section_id: Owning section
        topic_ids: Ids of the topics owned by this branch
        topic_count: Denormalized number of owned topics
        id: Branch identifier (None until stored)
    """

    name: str
    description: str | None = None
    section_id: int | None = None
    topic_ids: list[int] = field(default_factory=list)
    topic_count: int = 0
    id: int | None = None

    def add_topic(self, topic: Topic) -> None:
        """Take ownership of a topic."""
        if topic.id is None:
            raise ValueError("Topic must be stored before it joins a branch")
        topic.branch_id = self.id
        if not self.contains(topic.id):
            self.topic_ids.append(topic.id)
        self.topic_count = len(self.topic_ids)

    def remove_topic(self, topic: Topic) -> None:
        """Release ownership of a topic.

        Raises:
            ValueError: If the topic is not in this branch
        """
        if not self.contains(topic.id):
            raise ValueError(f"Topic {topic.id} is not in branch {self.id}")
        self.topic_ids.remove(topic.id)
        self.topic_count = len(self.topic_ids)

    def contains(self, topic_id: int) -> bool:
        return topic_id in self.topic_ids


@dataclass
class Section:
    """Top-level grouping of branches. Not mutated by the engines."""

    name: str
    position: int = 0
    branch_ids: list[int] = field(default_factory=list)
    id: int | None = None
