import logging
from typing import Any, Dict

from postgrest.exceptions import APIError

from marketplace.Auth.deps import AuthContext
from marketplace.DB.supabase import get_supabase
from marketplace.common.errors import NotFound, ValidationFailed
from marketplace.common.pagination import Page
from marketplace.common.query import api_error_message
from marketplace.features.ads import service as ads_service
from .repository import profile_repository
from .schemas import ProfileUpdate

logger = logging.getLogger("users.service")


async def get_public_profile(user_id: str) -> Dict[str, Any]:
    client = await get_supabase()
    try:
        profile = await profile_repository.get_public(client, user_id)
    except APIError as exc:
        logger.info("users.get_public lookup failed user_id=%s code=%s", user_id, getattr(exc, "code", None))
        profile = None
    if profile is None:
        raise NotFound("The requested user does not exist", error="User not found")
    return profile


async def get_my_profile(auth: AuthContext) -> Dict[str, Any]:
    try:
        profile = await profile_repository.get_full(auth.supabase, auth.user.id)
    except APIError:
        profile = None
    if profile is None:
        raise NotFound("User profile does not exist", error="Profile not found")
    return profile


async def update_my_profile(auth: AuthContext, data: ProfileUpdate) -> Dict[str, Any]:
    fields = data.model_dump(mode="json", exclude_unset=True)
    try:
        profile = await profile_repository.update(auth.supabase, auth.user.id, fields)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to update profile")
    if profile is None:
        raise NotFound("User profile does not exist", error="Profile not found")
    return profile


async def list_ads_of_user(user_id: str, status: str | None, page: Page) -> Dict[str, Any]:
    client = await get_supabase()
    return await ads_service.list_user_ads(client, user_id, status, page)


async def search_profiles(q: str, page: Page) -> Dict[str, Any]:
    client = await get_supabase()
    try:
        rows, total = await profile_repository.search_by_name(client, q, page)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to search users")
    return page.envelope("users", rows, total)
