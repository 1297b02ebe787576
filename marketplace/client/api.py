"""Typed async client for the marketplace API.

One method per backend operation. Bearer tokens come from a ``SessionStore``;
any response carrying a session is normalised and persisted through it. A 401
received while a token is held triggers exactly one refresh; if that works the
original request is replayed once, otherwise the stored session is cleared and
``SessionExpiredError`` is raised.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional, Union

import httpx

from marketplace.features.ads.schemas import Ad, AdCreate, AdPage, AdUpdate
from marketplace.features.users.schemas import Profile, PublicProfile
from .errors import ApiRequestError, SessionExpiredError
from .listing import AdFilters, build_ads_query
from .session import MemoryStorage, SessionStore, normalize_session

logger = logging.getLogger("client.api")

DEFAULT_BASE_URL = "http://localhost:3001"

SessionListener = Callable[[], None]


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        store: Optional[SessionStore] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[httpx.Timeout] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("MARKETPLACE_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.store = store if store is not None else SessionStore(MemoryStorage())
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout or httpx.Timeout(connect=3, read=10, write=10, pool=5),
            headers={"Content-Type": "application/json"},
        )
        self._expired_listeners: list[SessionListener] = []

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------
    # Session lifecycle
    # ------------------------
    def is_authenticated(self) -> bool:
        return self.store.is_authenticated()

    def clear_session(self) -> None:
        self.store.clear()

    def on_session_expired(self, listener: SessionListener) -> Callable[[], None]:
        self._expired_listeners.append(listener)

        def _remove() -> None:
            if listener in self._expired_listeners:
                self._expired_listeners.remove(listener)

        return _remove

    def _persist_session(self, payload: Mapping[str, Any]) -> bool:
        record = normalize_session(payload.get("session") if isinstance(payload, Mapping) else None)
        if record is None:
            return False
        self.store.save(record)
        return True

    async def refresh(self) -> bool:
        """Exchange the stored refresh token for a new session; never raises."""
        record = self.store.load()
        if record is None:
            return False
        try:
            resp = await self._http.post("/api/auth/refresh", json={"refresh_token": record.refresh_token})
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed: %s", e)
            return False
        if not resp.is_success:
            return False
        return self._persist_session(self._decode(resp))

    def _session_expired(self) -> None:
        self.store.clear()
        for listener in list(self._expired_listeners):
            try:
                listener()
            except Exception:  # noqa: BLE001
                logger.exception("session expired listener failed")

    # ------------------------
    # Transport
    # ------------------------
    @staticmethod
    def _decode(resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, str]] = None,
        authenticated: bool = True,
        _replay: bool = False,
    ) -> Dict[str, Any]:
        token = self.store.access_token if authenticated else None
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            resp = await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error("API request failed %s %s: %s", method, path, e)
            raise ApiRequestError(0, f"Network error: {e}") from e
        data = self._decode(resp)
        if resp.is_success:
            return data

        if resp.status_code == 401 and token and not _replay:
            if await self.refresh():
                return await self.request(method, path, json=json, params=params, _replay=True)
            self._session_expired()
            raise SessionExpiredError()

        message = data.get("message") or f"HTTP Error: {resp.status_code}"
        raise ApiRequestError(resp.status_code, message, data)

    # ------------------------
    # Authentication
    # ------------------------
    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self.request(
            "POST", "/api/auth/login", json={"email": email, "password": password}, authenticated=False
        )
        if not self._persist_session(data):
            logger.warning("login response carried no usable session")
        return data

    async def register(self, email: str, password: str, user_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"email": email, "password": password}
        if user_metadata:
            body["user_metadata"] = user_metadata
        data = await self.request("POST", "/api/auth/register", json=body, authenticated=False)
        self._persist_session(data)
        return data

    async def logout(self) -> None:
        """Best-effort remote logout; local tokens are cleared either way."""
        try:
            await self.request("POST", "/api/auth/logout")
        finally:
            self.store.clear()

    async def get_current_user(self) -> Dict[str, Any]:
        data = await self.request("GET", "/api/auth/profile")
        return data.get("user") or {}

    async def update_profile(self, email: Optional[str] = None, user_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if email is not None:
            body["email"] = email
        if user_metadata is not None:
            body["user_metadata"] = user_metadata
        data = await self.request("PUT", "/api/auth/profile", json=body)
        return data.get("user") or {}

    # ------------------------
    # Ads
    # ------------------------
    async def get_ads(self, filters: Optional[AdFilters] = None) -> AdPage:
        data = await self.request("GET", "/api/ads", params=build_ads_query(filters))
        return AdPage.model_validate(data)

    async def get_ad(self, ad_id: str) -> Ad:
        data = await self.request("GET", f"/api/ads/{ad_id}")
        if data.get("ad"):
            return Ad.model_validate(data["ad"])
        if data.get("data"):
            return Ad.model_validate(data["data"])
        if data.get("id"):
            return Ad.model_validate(data)
        raise ApiRequestError(200, "Invalid response format from getAd", data)

    async def create_ad(self, ad: Union[AdCreate, Dict[str, Any]]) -> Ad:
        body = AdCreate.model_validate(ad).model_dump(exclude_none=True)
        data = await self.request("POST", "/api/ads", json=body)
        return Ad.model_validate(data["ad"])

    async def update_ad(self, ad_id: str, changes: Union[AdUpdate, Dict[str, Any]]) -> Ad:
        body = changes.model_dump(exclude_unset=True) if isinstance(changes, AdUpdate) else dict(changes)
        data = await self.request("PUT", f"/api/ads/{ad_id}", json=body)
        return Ad.model_validate(data["ad"])

    async def delete_ad(self, ad_id: str) -> None:
        await self.request("DELETE", f"/api/ads/{ad_id}")

    async def get_user_ads(self, status: Optional[str] = None, page: Optional[int] = None, limit: Optional[int] = None) -> AdPage:
        data = await self.request("GET", "/api/ads/my/ads", params=_page_params(status=status, page=page, limit=limit))
        return AdPage.model_validate(data)

    # ------------------------
    # Users
    # ------------------------
    async def get_profile(self, user_id: str) -> PublicProfile:
        data = await self.request("GET", f"/api/users/{user_id}")
        return PublicProfile.model_validate(data["profile"])

    async def get_my_profile(self) -> Profile:
        data = await self.request("GET", "/api/users/me/profile")
        return Profile.model_validate(data["profile"])

    async def update_my_profile(self, **fields: Any) -> Profile:
        data = await self.request("PUT", "/api/users/me/profile", json=fields)
        return Profile.model_validate(data["profile"])

    async def get_ads_by_user(
        self, user_id: str, status: Optional[str] = None, page: Optional[int] = None, limit: Optional[int] = None
    ) -> AdPage:
        data = await self.request("GET", f"/api/users/{user_id}/ads", params=_page_params(status=status, page=page, limit=limit))
        return AdPage.model_validate(data)

    async def search_users(self, q: str, page: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        return await self.request("GET", "/api/users/search", params=_page_params(q=q, page=page, limit=limit))

    async def health(self) -> Dict[str, Any]:
        return await self.request("GET", "/health", authenticated=False)


def _page_params(**values: Any) -> Dict[str, str]:
    return {k: str(v) for k, v in values.items() if v is not None}
