"""
Error types for the forum server.

This module defines the exceptions raised by the engines:
- ForumError: Base exception
- NotFoundError: Referenced branch/topic/post does not exist
- PreconditionViolation: Caller broke an operation precondition
  (e.g. no authenticated principal for a mutating call)

Invariants:
    - All engine errors inherit from ForumError
    - Errors carry a stable code for the calling layer to map
    - Store-level errors (sqlite3.Error) are never wrapped
"""

from __future__ import annotations

from typing import Any


class ForumError(Exception):
    """Base exception for all forum engine errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "FORUM_ERROR"
        self.details = details or {}


class NotFoundError(ForumError):
    """Referenced entity does not exist.

    Raised when:
    - A topic id does not resolve
    - A branch id does not resolve
    """

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class PreconditionViolation(ForumError):
    """An operation was called without its preconditions being met.

    The calling layer is expected to authenticate before invoking a
    mutating operation, so this is fatal for the request and not retryable.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PRECONDITION_VIOLATION")
