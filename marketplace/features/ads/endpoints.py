from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from marketplace.Auth.deps import AuthContext, authenticate, bearer_token, optional_auth, require_auth
from marketplace.common.errors import upstream_guard
from marketplace.common.pagination import Page, page_params
from .query import AdQuery
from .schemas import AdCreate, AdStatus, SortMode
from . import service

logger = logging.getLogger("ads.endpoints")

router = APIRouter(prefix="/ads", tags=["ads"])


@router.get("")
async def list_ads(
    category: Optional[str] = None,
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
    search: Optional[str] = None,
    sort: Optional[str] = Query(None, description=f"One of {[m.value for m in SortMode]}"),
    page: Page = Depends(page_params),
    auth: Optional[AuthContext] = Depends(optional_auth),
):
    """Public browse with substring search, price bounds and sorting."""
    query = AdQuery(
        search=search,
        price_min=price_min,
        price_max=price_max,
        sort=sort or SortMode.relevance,
        category=category,
    )
    with upstream_guard("Failed to fetch ads", logger):
        return await service.list_ads(query, page)


@router.get("/my/ads")
async def list_my_ads(
    status_filter: Optional[AdStatus] = Query(None, alias="status"),
    page: Page = Depends(page_params),
    auth: AuthContext = Depends(require_auth),
):
    with upstream_guard("Failed to fetch user ads", logger):
        return await service.list_user_ads(auth.supabase, auth.user.id, status_filter, page)


@router.get("/{ad_id}")
async def get_ad(ad_id: str, auth: Optional[AuthContext] = Depends(optional_auth)):
    with upstream_guard("Failed to fetch ad", logger):
        return {"ad": await service.get_ad(ad_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ad(payload: AdCreate, request: Request, token: str = Depends(bearer_token)):
    auth = await authenticate(request, token)
    with upstream_guard("Failed to create ad", logger):
        ad = await service.create_ad(auth, payload)
    return {"message": "Ad created successfully", "ad": ad}


@router.put("/{ad_id}")
async def update_ad(ad_id: str, request: Request, auth: AuthContext = Depends(require_auth)):
    """Owner-only partial update; the body is judged after the ownership check."""
    payload: Any = None
    try:
        payload = await request.json()
    except ValueError:
        logger.info("ads.update unparseable body ad_id=%s", ad_id)
    with upstream_guard("Failed to update ad", logger):
        ad = await service.update_ad(auth, ad_id, payload)
    return {"message": "Ad updated successfully", "ad": ad}


@router.delete("/{ad_id}")
async def delete_ad(ad_id: str, auth: AuthContext = Depends(require_auth)):
    with upstream_guard("Failed to delete ad", logger):
        await service.delete_ad(auth, ad_id)
    return {"message": "Ad deleted successfully"}
