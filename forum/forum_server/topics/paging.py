"""Page requests and pages of listing results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    """A 1-indexed page of fixed size.

    Page numbers below 1 are treated as page 1.
    """

    page: int
    size: int

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"Page size must be positive, got {self.size}")
        if self.page < 1:
            object.__setattr__(self, "page", 1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


@dataclass
class Page(Generic[T]):
    """One page of results plus the totals needed to render pagination.

    Attributes:
        items: Items on this page
        number: 1-indexed page number
        size: Page size used for the query
        total: Total number of matching items
    """

    items: list[T] = field(default_factory=list)
    number: int = 1
    size: int = 1
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 1
        return math.ceil(self.total / self.size)

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    def __len__(self) -> int:
        return len(self.items)
