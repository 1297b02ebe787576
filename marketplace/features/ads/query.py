"""Listing filter model and its translation onto a PostgREST select builder.

``AdQuery`` is a plain value object; ``apply_ad_query`` only chains builder
calls and performs no I/O, so the same code drives the real client and the
in-memory fake used by the tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from marketplace.common.pagination import Page
from .schemas import SortMode

logger = logging.getLogger("ads.query")

# column, descending
_SORT_ORDER: dict[SortMode, tuple[str, bool]] = {
    SortMode.relevance: ("created_at", True),
    SortMode.newest: ("created_at", True),
    SortMode.oldest: ("created_at", False),
    SortMode.price_asc: ("price", False),
    SortMode.price_desc: ("price", True),
}


@dataclass(frozen=True)
class AdQuery:
    search: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    sort: SortMode = SortMode.relevance
    category: Optional[str] = None
    status: Optional[str] = None
    user_id: Optional[str] = None


def sort_order(sort: SortMode | str | None) -> tuple[str, bool]:
    """Relevance has no ranking signal yet and falls back to newest first."""
    try:
        mode = SortMode(sort) if sort else SortMode.relevance
    except ValueError:
        mode = SortMode.relevance
    return _SORT_ORDER[mode]


def _quote(value: str) -> str:
    # PostgREST logic-tree values containing , ( ) must be double quoted
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{escaped}%"'


def search_filter(search: str) -> str:
    pattern = _quote(search.strip())
    return f"title.ilike.{pattern},description.ilike.{pattern}"


def apply_ad_query(builder: Any, query: AdQuery, page: Page) -> Any:
    """Chain filters, ordering and the page window onto ``builder``.

    Ordering is applied before the range so every page slices one stable
    sequence.
    """
    if query.category:
        # categories column does not exist yet; accepted and ignored
        logger.debug("ads.query category filter ignored category=%s", query.category)
    if query.user_id:
        builder = builder.eq("user_id", query.user_id)
    if query.status:
        builder = builder.eq("status", query.status)
    if query.price_min is not None:
        builder = builder.gte("price", query.price_min)
    if query.price_max is not None:
        builder = builder.lte("price", query.price_max)
    if query.search and query.search.strip():
        builder = builder.or_(search_filter(query.search))
    column, desc = sort_order(query.sort)
    builder = builder.order(column, desc=desc)
    return builder.range(page.offset, page.range_end)
