"""Listing use cases: public browse/detail and owner-scoped mutations."""

import logging
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError
from pydantic import ValidationError

from marketplace.Auth.deps import AuthContext
from marketplace.Core.config import get_settings
from marketplace.DB.supabase import get_supabase_admin
from marketplace.common.errors import Forbidden, NotFound, ValidationFailed
from marketplace.common.pagination import Page
from marketplace.common.query import api_error_message
from .query import AdQuery
from .repository import ad_repository
from .schemas import AdCreate, AdUpdate

logger = logging.getLogger("ads.service")


def public_image_url(image: Optional[str]) -> Optional[str]:
    """Expand a storage object path to its public URL; URLs pass through."""
    if not image:
        return image
    if image.startswith(("http://", "https://", "data:")):
        return image
    settings = get_settings()
    base = settings.storage_public_base
    if not base:
        return image
    path = image.lstrip("/")
    bucket = settings.storage_bucket
    if not path.startswith(f"{bucket}/"):
        path = f"{bucket}/{path}"
    return f"{base}/{path}"


def present(ad: Dict[str, Any]) -> Dict[str, Any]:
    if ad.get("image"):
        return {**ad, "image": public_image_url(ad["image"])}
    return ad


async def list_ads(query: AdQuery, page: Page) -> Dict[str, Any]:
    client = await get_supabase_admin()
    try:
        rows, total = await ad_repository.search(client, query, page)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to fetch ads")
    return page.envelope("ads", [present(r) for r in rows], total)


async def get_ad(ad_id: str) -> Dict[str, Any]:
    client = await get_supabase_admin()
    try:
        ad = await ad_repository.get_by_id(client, ad_id)
    except APIError as exc:
        # malformed ids surface as PostgREST errors; same outcome as a miss
        logger.info("ads.get_ad lookup failed ad_id=%s code=%s", ad_id, getattr(exc, "code", None))
        ad = None
    if ad is None:
        raise NotFound("The requested ad does not exist", error="Ad not found")
    return present(ad)


async def create_ad(auth: AuthContext, data: AdCreate) -> Dict[str, Any]:
    record = data.model_dump(exclude_none=True)
    record.update({"user_id": auth.user.id, "status": "active"})
    try:
        ad = await ad_repository.insert(auth.supabase, record)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to create ad")
    logger.info("ads.create ad_id=%s user_id=%s", ad.get("id"), auth.user.id)
    return present(ad)


async def _require_owner(auth: AuthContext, ad_id: str, action: str) -> None:
    """Read the current owner and compare with the caller.

    The read and the following write are separate statements; a concurrent
    ownership change between them is not detected.
    """
    try:
        owner_id = await ad_repository.get_owner_id(auth.supabase, ad_id)
    except APIError:
        owner_id = None
    if owner_id is None:
        raise NotFound("The requested ad does not exist", error="Ad not found")
    if owner_id != auth.user.id:
        raise Forbidden(f"You can only {action} your own ads")


async def update_ad(auth: AuthContext, ad_id: str, payload: Any) -> Dict[str, Any]:
    """Owner-only partial update.

    The ownership check runs before the payload is judged, so a non-owner is
    refused with 403 whatever they sent.
    """
    try:
        data: Optional[AdUpdate] = AdUpdate.model_validate(payload)
        problem = None
    except ValidationError as exc:
        data, problem = None, exc
    await _require_owner(auth, ad_id, "update")
    if data is None:
        raise ValidationFailed(_first_error(problem))
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("No updatable fields supplied")
    try:
        ad = await ad_repository.update(auth.supabase, ad_id, fields)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to update ad")
    if ad is None:
        raise NotFound("The requested ad does not exist", error="Ad not found")
    return present(ad)


async def delete_ad(auth: AuthContext, ad_id: str) -> None:
    await _require_owner(auth, ad_id, "delete")
    try:
        await ad_repository.delete(auth.supabase, ad_id)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to delete ad")
    logger.info("ads.delete ad_id=%s user_id=%s", ad_id, auth.user.id)


async def list_user_ads(client, user_id: str, status: Optional[str], page: Page) -> Dict[str, Any]:
    query = AdQuery(user_id=user_id, status=status)
    try:
        rows, total = await ad_repository.search(client, query, page, with_seller=False)
    except APIError as exc:
        raise ValidationFailed(api_error_message(exc), error="Failed to fetch user ads")
    return page.envelope("ads", [present(r) for r in rows], total)


def _first_error(exc: Optional[ValidationError]) -> str:
    if exc is None:
        return "Invalid request body"
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))
