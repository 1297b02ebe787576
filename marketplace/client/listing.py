"""Listing filters for the browse view.

``build_ads_query`` is the pure translation from a filter object to query
parameters. ``ListingBrowser`` keeps the filters the user is editing (draft)
apart from the filters the results reflect (applied); only ``apply`` moves
one to the other and only applied filters are ever fetched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional, Sequence, Union

from marketplace.features.ads.schemas import AdPage
from .errors import ApiRequestError

if TYPE_CHECKING:
    from .api import ApiClient

logger = logging.getLogger("client.listing")


@dataclass(frozen=True)
class AdFilters:
    category: Union[str, Sequence[str], None] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    search: Optional[str] = None
    sort: Optional[str] = None
    page: Optional[int] = None
    limit: Optional[int] = None


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_ads_query(filters: Optional[AdFilters]) -> dict[str, str]:
    if filters is None:
        return {}
    params: dict[str, str] = {}
    if filters.category:
        if isinstance(filters.category, str):
            params["category"] = filters.category
        else:
            params["category"] = ",".join(filters.category)
    if filters.price_min is not None:
        params["price_min"] = _number(filters.price_min)
    if filters.price_max is not None:
        params["price_max"] = _number(filters.price_max)
    if filters.search:
        params["search"] = filters.search
    if filters.sort:
        params["sort"] = filters.sort
    if filters.page is not None:
        params["page"] = str(filters.page)
    if filters.limit is not None:
        params["limit"] = str(filters.limit)
    return params


class ListingBrowser:
    def __init__(self, api: "ApiClient", initial: Optional[AdFilters] = None) -> None:
        self._api = api
        start = initial or AdFilters()
        if start.page is None:
            start = replace(start, page=1)
        self.draft: AdFilters = start
        self.applied: AdFilters = start
        self.result: Optional[AdPage] = None
        self.error: Optional[str] = None
        self.loading = False

    @property
    def has_pending_changes(self) -> bool:
        return replace(self.draft, page=None) != replace(self.applied, page=None)

    def edit(self, **changes) -> AdFilters:
        self.draft = replace(self.draft, **changes)
        return self.draft

    def discard(self) -> AdFilters:
        self.draft = self.applied
        return self.draft

    def apply(self) -> AdFilters:
        """Commit the draft; a new filter set always starts from page 1."""
        self.applied = replace(self.draft, page=1)
        self.draft = self.applied
        return self.applied

    async def fetch(self) -> Optional[AdPage]:
        self.loading = True
        try:
            self.result = await self._api.get_ads(self.applied)
            self.error = None
        except ApiRequestError as e:
            logger.warning("listing fetch failed: %s", e.message)
            self.error = e.message
            return None
        finally:
            self.loading = False
        return self.result

    async def retry(self) -> Optional[AdPage]:
        return await self.fetch()

    async def goto_page(self, page: int) -> Optional[AdPage]:
        if page < 1:
            raise ValueError("page must be >= 1")
        self.applied = replace(self.applied, page=page)
        self.draft = replace(self.draft, page=page)
        return await self.fetch()
