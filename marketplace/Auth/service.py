"""Calls into the Supabase identity provider.

Every function returns plain dicts shaped for the API surface; SDK model
objects stay inside this module. Provider rejections surface as the SDK's
``AuthError`` for the routes to map.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from marketplace.Core.config import get_settings
from marketplace.DB.supabase import create_anon_client, get_supabase, get_supabase_admin
from .schemas import CurrentUser

logger = logging.getLogger("auth.service")

_USER_FIELDS = (
    "id",
    "email",
    "aud",
    "role",
    "email_confirmed_at",
    "phone",
    "phone_confirmed_at",
    "confirmed_at",
    "last_sign_in_at",
    "app_metadata",
    "user_metadata",
    "identities",
    "created_at",
    "updated_at",
    "is_anonymous",
)
_SESSION_FIELDS = ("access_token", "token_type", "expires_in", "expires_at", "refresh_token")


def _plain(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def clean_user(user: Any) -> Optional[dict[str, Any]]:
    """Serialisable projection of a provider user (SDK model or dict)."""
    if user is None:
        return None
    get = user.get if isinstance(user, dict) else lambda k: getattr(user, k, None)
    return {field: _plain(get(field)) for field in _USER_FIELDS}


def clean_session(session: Any) -> Optional[dict[str, Any]]:
    if session is None:
        return None
    get = session.get if isinstance(session, dict) else lambda k: getattr(session, k, None)
    out = {field: get(field) for field in _SESSION_FIELDS}
    out["token_type"] = out.get("token_type") or "bearer"
    return out


def to_current_user(user: Any) -> CurrentUser:
    data = clean_user(user) or {}
    email = data.get("email") or (data.get("user_metadata") or {}).get("email")
    return CurrentUser(id=str(data["id"]), email=email, role=data.get("role") or "authenticated")


async def sign_up(email: str, password: str, metadata: dict | None = None) -> tuple[dict, dict | None]:
    client = await create_anon_client()
    credentials: dict[str, Any] = {"email": email, "password": password}
    if metadata:
        credentials["options"] = {"data": metadata}  # becomes raw_user_meta_data
    resp = await client.auth.sign_up(credentials)
    return clean_user(resp.user), clean_session(resp.session)


async def sign_in(email: str, password: str) -> tuple[dict, dict | None]:
    client = await create_anon_client()
    resp = await client.auth.sign_in_with_password({"email": email, "password": password})
    return clean_user(resp.user), clean_session(resp.session)


async def sign_out(access_token: str) -> None:
    """Revoke the caller's refresh tokens at the provider."""
    admin = await get_supabase_admin()
    await admin.auth.admin.sign_out(access_token)


async def refresh(refresh_token: str) -> dict | None:
    client = await create_anon_client()
    resp = await client.auth.refresh_session(refresh_token)
    return clean_session(resp.session)


async def fetch_user(access_token: str) -> Any:
    """Verify ``access_token`` with the provider and return the SDK user.

    Returns ``None`` when the provider knows no user for the token. Raises
    ``AuthError`` when it rejects the token and ``asyncio.TimeoutError`` when
    it does not answer in time.
    """
    client = await get_supabase()
    t0 = time.perf_counter()
    resp = await asyncio.wait_for(client.auth.get_user(access_token), timeout=get_settings().whoami_timeout)
    ms = int((time.perf_counter() - t0) * 1000)
    if ms > 50:
        logger.info("auth.get_user_ms=%d", ms)
    return resp.user if resp else None


async def update_user(user_id: str, email: str | None = None, metadata: dict | None = None) -> dict:
    """Apply an email/metadata change to the verified caller's account."""
    attributes: dict[str, Any] = {}
    if email:
        attributes["email"] = email
    if metadata:
        attributes["user_metadata"] = metadata
    admin = await get_supabase_admin()
    resp = await admin.auth.admin.update_user_by_id(user_id, attributes)
    return clean_user(resp.user)
