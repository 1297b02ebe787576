import json

import httpx
import pytest

from marketplace.client import (
    AdFilters,
    ApiClient,
    ApiRequestError,
    MemoryStorage,
    SessionExpiredError,
    SessionRecord,
    SessionStore,
)

pytestmark = pytest.mark.anyio

FAR_FUTURE = 1_900_000_000
AD = {"id": "ad-1", "title": "M4", "description": "AEG", "price": 120, "user_id": "u1", "status": "active"}


class Backend:
    """Scripted responses keyed by ``(method, path)``; records every request."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "Not Found", "message": "Not Found"})
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


def make_client(backend, session=None):
    store = SessionStore(MemoryStorage())
    if session:
        store.save(session)
    return ApiClient("http://api.test", store, transport=httpx.MockTransport(backend))


async def test_bearer_token_is_attached():
    backend = Backend()
    backend.on("GET", "/api/auth/profile", (200, {"user": {"id": "u1"}}))
    api = make_client(backend, SessionRecord("tok", "ref", FAR_FUTURE))

    assert await api.get_current_user() == {"id": "u1"}
    assert backend.requests[0].headers["Authorization"] == "Bearer tok"
    await api.aclose()


async def test_401_refreshes_once_and_replays():
    backend = Backend()
    backend.on("GET", "/api/auth/profile", (401, {"error": "Unauthorized"}), (200, {"user": {"id": "u1"}}))
    backend.on(
        "POST",
        "/api/auth/refresh",
        (200, {"session": {"access_token": "new", "refresh_token": "ref2", "expires_in": 3600}}),
    )
    api = make_client(backend, SessionRecord("old", "ref", FAR_FUTURE))

    assert await api.get_current_user() == {"id": "u1"}

    profile_calls = backend.calls("GET", "/api/auth/profile")
    assert [r.headers["Authorization"] for r in profile_calls] == ["Bearer old", "Bearer new"]
    refresh_calls = backend.calls("POST", "/api/auth/refresh")
    assert len(refresh_calls) == 1
    assert json.loads(refresh_calls[0].content) == {"refresh_token": "ref"}
    assert api.store.load().refresh_token == "ref2"
    await api.aclose()


async def test_replayed_request_is_not_refreshed_again():
    backend = Backend()
    backend.on("GET", "/api/auth/profile", (401, {"error": "Unauthorized", "message": "still no"}))
    backend.on("POST", "/api/auth/refresh", (200, {"session": {"access_token": "new", "refresh_token": "ref2"}}))
    api = make_client(backend, SessionRecord("old", "ref", FAR_FUTURE))

    with pytest.raises(ApiRequestError) as info:
        await api.get_current_user()

    assert info.value.status_code == 401
    assert len(backend.calls("POST", "/api/auth/refresh")) == 1
    assert len(backend.calls("GET", "/api/auth/profile")) == 2
    await api.aclose()


async def test_failed_refresh_clears_session_and_notifies():
    backend = Backend()
    backend.on("GET", "/api/auth/profile", (401, {"error": "Unauthorized"}))
    backend.on("POST", "/api/auth/refresh", (401, {"error": "Token refresh failed"}))
    api = make_client(backend, SessionRecord("old", "ref", FAR_FUTURE))
    expired = []
    api.on_session_expired(lambda: expired.append(True))

    with pytest.raises(SessionExpiredError) as info:
        await api.get_current_user()

    assert info.value.message == "Session expired. Please login again."
    assert api.store.load() is None
    assert not api.is_authenticated()
    assert expired == [True]
    assert len(backend.calls("GET", "/api/auth/profile")) == 1
    await api.aclose()


async def test_401_without_token_is_a_plain_error():
    backend = Backend()
    backend.on("POST", "/api/ads", (401, {"error": "Unauthorized", "message": "Missing or invalid authorization header"}))
    api = make_client(backend)

    with pytest.raises(ApiRequestError) as info:
        await api.create_ad({"title": "x", "description": "y", "price": 1})

    assert not isinstance(info.value, SessionExpiredError)
    assert info.value.message == "Missing or invalid authorization header"
    assert backend.calls("POST", "/api/auth/refresh") == []
    await api.aclose()


async def test_wrong_password_leaves_stored_tokens_alone():
    backend = Backend()
    backend.on("POST", "/api/auth/login", (401, {"error": "Login failed", "message": "Invalid login credentials"}))
    api = make_client(backend, SessionRecord("keep", "keep-ref", FAR_FUTURE))

    with pytest.raises(ApiRequestError) as info:
        await api.login("player@example.com", "wrong")

    assert info.value.error == "Login failed"
    assert "Authorization" not in backend.requests[0].headers
    assert backend.calls("POST", "/api/auth/refresh") == []
    assert api.store.load().access_token == "keep"
    await api.aclose()


async def test_login_persists_normalised_session():
    backend = Backend()
    backend.on(
        "POST",
        "/api/auth/login",
        (200, {"user": {"id": "u1"}, "session": {"accessToken": "a", "refreshToken": "r", "expiresAt": FAR_FUTURE}}),
    )
    api = make_client(backend)

    await api.login("player@example.com", "secret123")

    assert api.store.load() == SessionRecord("a", "r", FAR_FUTURE)
    assert api.is_authenticated()
    await api.aclose()


async def test_logout_clears_tokens_even_when_remote_fails():
    backend = Backend()
    backend.on("POST", "/api/auth/logout", (500, {"error": "Internal server error", "message": "Failed to logout"}))
    api = make_client(backend, SessionRecord("tok", "ref", FAR_FUTURE))

    with pytest.raises(ApiRequestError):
        await api.logout()

    assert api.store.load() is None
    await api.aclose()


async def test_get_ads_sends_only_set_filters():
    backend = Backend()
    backend.on("GET", "/api/ads", (200, {"ads": [AD], "total": 1, "page": 1, "limit": 2}))
    api = make_client(backend)

    page = await api.get_ads(AdFilters(category=["rifles", "smg"], price_min=100, sort="price-asc", limit=2))

    params = dict(backend.requests[0].url.params)
    assert params == {"category": "rifles,smg", "price_min": "100", "sort": "price-asc", "limit": "2"}
    assert page.total == 1
    assert page.ads[0].title == "M4"
    await api.aclose()


@pytest.mark.parametrize("body", [{"ad": AD}, {"data": AD}, AD])
async def test_get_ad_accepts_wrapped_and_bare_payloads(body):
    backend = Backend()
    backend.on("GET", "/api/ads/ad-1", (200, body))
    api = make_client(backend)

    ad = await api.get_ad("ad-1")

    assert ad.id == "ad-1"
    await api.aclose()


async def test_get_ad_rejects_unknown_shape():
    backend = Backend()
    backend.on("GET", "/api/ads/ad-1", (200, {"something": "else"}))
    api = make_client(backend)

    with pytest.raises(ApiRequestError, match="Invalid response format from getAd"):
        await api.get_ad("ad-1")
    await api.aclose()


async def test_error_without_message_uses_status():
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    api = ApiClient("http://api.test", transport=httpx.MockTransport(handler))
    with pytest.raises(ApiRequestError, match="HTTP Error: 502"):
        await api.health()
    await api.aclose()


async def test_transport_failure_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with ApiClient("http://api.test", transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ApiRequestError) as info:
            await api.health()
    assert info.value.status_code == 0
