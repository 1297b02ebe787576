"""Public profile lookups and the caller's own profile."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from marketplace.Auth.deps import AuthContext, authenticate, bearer_token, require_auth
from marketplace.common.errors import upstream_guard
from marketplace.common.pagination import Page, page_params
from marketplace.features.ads.schemas import AdStatus
from .schemas import ProfileUpdate
from . import service

logger = logging.getLogger("users.endpoints")

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/search")
async def search_users(q: str = Query(..., min_length=1), page: Page = Depends(page_params)):
    with upstream_guard("Failed to search users", logger):
        return await service.search_profiles(q, page)


@router.get("/me/profile")
async def read_my_profile(auth: AuthContext = Depends(require_auth)):
    with upstream_guard("Failed to fetch user profile", logger):
        return {"profile": await service.get_my_profile(auth)}


@router.put("/me/profile")
async def update_my_profile(data: ProfileUpdate, request: Request, token: str = Depends(bearer_token)):
    auth = await authenticate(request, token)
    with upstream_guard("Failed to update profile", logger):
        profile = await service.update_my_profile(auth, data)
    return {"message": "Profile updated successfully", "profile": profile}


@router.get("/{user_id}")
async def read_profile(user_id: str):
    with upstream_guard("Failed to fetch user profile", logger):
        return {"profile": await service.get_public_profile(user_id)}


@router.get("/{user_id}/ads")
async def read_user_ads(
    user_id: str,
    status_filter: Optional[AdStatus] = Query(None, alias="status"),
    page: Page = Depends(page_params),
):
    with upstream_guard("Failed to fetch user ads", logger):
        return await service.list_ads_of_user(user_id, status_filter, page)
