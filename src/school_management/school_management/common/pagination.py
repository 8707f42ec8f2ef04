from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def normalize_page(page, limit) -> tuple[int, int]:
    """Clamp page/limit coming from query strings."""
    try:
        page = int(page or 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


@dataclass(frozen=True)
class Page:
    items: Sequence[Any]
    page: int
    limit: int
    total: int
    extra: dict = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self, serialize=lambda x: x) -> dict:
        return {
            "items": [serialize(i) for i in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
            **self.extra,
        }
