"""Supabase client factory.

Three kinds of handle exist:

- ``get_supabase()``: process-wide anon client. Row-level access rules apply
  with no caller identity, so writes through it fail downstream.
- ``get_supabase_admin()``: process-wide service-role client. Bypasses
  row-level rules; used only for intentionally public reads.
- ``create_user_client(token)``: request-scoped client bound to the caller's
  access token, so the data store enforces row-level rules as that user.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from supabase import AsyncClient, create_async_client
from supabase.lib.client_options import AsyncClientOptions

from marketplace.Core.config import get_settings
from marketplace.common.errors import UpstreamError

_client: Optional[AsyncClient] = None
_admin_client: Optional[AsyncClient] = None
_lock = asyncio.Lock()


def _options(access_token: str | None = None) -> AsyncClientOptions:
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return AsyncClientOptions(headers=headers, auto_refresh_token=False, persist_session=False)


async def _create(key: str, access_token: str | None = None) -> AsyncClient:
    settings = get_settings()
    if not settings.supabase_url or not key:
        raise UpstreamError("Supabase is not configured", error="Configuration error")
    try:
        return await create_async_client(settings.supabase_url, key, options=_options(access_token))
    except Exception as exc:  # pragma: no cover (network/init failure)
        raise UpstreamError("Could not create Supabase client") from exc


async def get_supabase() -> AsyncClient:
    global _client
    if _client is not None:
        return _client
    async with _lock:
        if _client is None:
            _client = await _create(get_settings().supabase_anon_key)
    return _client


async def get_supabase_admin() -> AsyncClient:
    global _admin_client
    if _admin_client is not None:
        return _admin_client
    async with _lock:
        if _admin_client is None:
            _admin_client = await _create(get_settings().supabase_service_role_key)
    return _admin_client


async def create_user_client(access_token: str) -> AsyncClient:
    """Fresh client whose PostgREST calls carry the caller's bearer token."""
    client = await _create(get_settings().supabase_anon_key, access_token)
    client.postgrest.auth(access_token)
    return client


async def create_anon_client() -> AsyncClient:
    """Throwaway anon client for auth calls that establish a session.

    Sign-in and refresh store the resulting session on the client, so they
    must not run on the shared handle.
    """
    return await _create(get_settings().supabase_anon_key)


__all__ = ["get_supabase", "get_supabase_admin", "create_user_client", "create_anon_client"]
