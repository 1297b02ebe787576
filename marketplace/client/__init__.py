from .api import ApiClient
from .auth import AuthSession, AuthSnapshot, AuthState, GuardDecision, RouteGuard, guard_decision
from .errors import ApiRequestError, SessionExpiredError
from .listing import AdFilters, ListingBrowser, build_ads_query
from .session import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    SessionRecord,
    SessionStore,
    normalize_session,
)

__all__ = [
    "ApiClient",
    "AuthSession",
    "AuthSnapshot",
    "AuthState",
    "GuardDecision",
    "RouteGuard",
    "guard_decision",
    "ApiRequestError",
    "SessionExpiredError",
    "AdFilters",
    "ListingBrowser",
    "build_ads_query",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "SessionRecord",
    "SessionStore",
    "normalize_session",
]
