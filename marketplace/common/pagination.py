from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Query

DEFAULT_LIMIT = 20
MAX_LIMIT = 50


@dataclass(frozen=True)
class Page:
    """Validated page/limit pair; ``offset`` is derived, never supplied."""

    page: int = 1
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def range_end(self) -> int:
        # PostgREST ranges are inclusive on both ends
        return self.offset + self.limit - 1

    def envelope(self, key: str, items: list[Any], total: int | None) -> dict[str, Any]:
        return {key: items, "total": total if total is not None else len(items), "page": self.page, "limit": self.limit}


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> Page:
    return Page(page=page, limit=limit)
