"""Application-wide authentication state.

``AuthSession`` is a small state machine over loading / unauthenticated /
authenticated. Transitions only happen through its named events (mount,
login, register, logout, session expiry); views read ``snapshot`` and
``subscribe`` for changes. ``RouteGuard`` turns the snapshot into a
placeholder / redirect / render decision and re-evaluates on every change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from .api import ApiClient
from .errors import ApiRequestError

logger = logging.getLogger("client.auth")

Navigator = Callable[[str], None]
VERIFY_EMAIL_MESSAGE = "Please check your email to verify your account"


class AuthState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthSnapshot:
    state: AuthState = AuthState.LOADING
    user: Optional[Dict[str, Any]] = None
    ready: bool = False

    @property
    def loading(self) -> bool:
        return self.state is AuthState.LOADING

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED


Listener = Callable[[AuthSnapshot], None]


def _noop(_path: str) -> None:
    return None


class AuthSession:
    def __init__(self, api: ApiClient, navigate: Optional[Navigator] = None) -> None:
        self.api = api
        self._navigate = navigate or _noop
        self._snapshot = AuthSnapshot()
        self._listeners: List[Listener] = []
        self._mounted = False
        self._detach_expiry = api.on_session_expired(self._on_session_expired)

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, state: AuthState, user: Optional[Dict[str, Any]] = None) -> None:
        self._snapshot = AuthSnapshot(state=state, user=user, ready=self._mounted)
        logger.debug("auth state -> %s", state.value)
        for listener in list(self._listeners):
            listener(self._snapshot)

    async def mount(self) -> AuthSnapshot:
        """Mark the client ready and run the initial check; later calls are no-ops."""
        if self._mounted:
            return self._snapshot
        self._mounted = True
        if not self.api.is_authenticated():
            self._emit(AuthState.UNAUTHENTICATED)
            return self._snapshot
        try:
            user = await self.api.get_current_user()
        except ApiRequestError as e:
            logger.info("initial user fetch failed: %s", e.message)
            self.api.clear_session()
            self._emit(AuthState.UNAUTHENTICATED)
            return self._snapshot
        self._emit(AuthState.AUTHENTICATED, user)
        return self._snapshot

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self.api.login(email, password)
        if not self.api.is_authenticated():
            if self._snapshot.state is not AuthState.UNAUTHENTICATED:
                self._emit(AuthState.UNAUTHENTICATED)
            raise ApiRequestError(200, "Login response did not include a session", data)
        self._emit(AuthState.AUTHENTICATED, data.get("user"))
        self._navigate("/")
        return data

    async def register(self, email: str, password: str, user_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = await self.api.register(email, password, user_metadata)
        if data.get("session") and self.api.is_authenticated():
            self._emit(AuthState.AUTHENTICATED, data.get("user"))
            self._navigate("/")
        else:
            self._emit(AuthState.UNAUTHENTICATED)
            self._navigate("/login?" + urlencode({"message": VERIFY_EMAIL_MESSAGE}))
        return data

    async def logout(self) -> None:
        try:
            await self.api.logout()
        except ApiRequestError as e:
            logger.warning("remote logout failed: %s", e.message)
        self._emit(AuthState.UNAUTHENTICATED)
        self._navigate("/")

    async def update_user(self, email: Optional[str] = None, user_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        user = await self.api.update_profile(email=email, user_metadata=user_metadata)
        self._emit(AuthState.AUTHENTICATED, user)
        return user

    def _on_session_expired(self) -> None:
        if self._snapshot.state is not AuthState.UNAUTHENTICATED:
            self._emit(AuthState.UNAUTHENTICATED)

    def close(self) -> None:
        self._detach_expiry()
        self._listeners.clear()


class GuardDecision(str, Enum):
    PLACEHOLDER = "placeholder"
    REDIRECT = "redirect"
    RENDER = "render"


def guard_decision(snapshot: AuthSnapshot) -> GuardDecision:
    if snapshot.loading:
        return GuardDecision.PLACEHOLDER
    if not snapshot.is_authenticated:
        return GuardDecision.REDIRECT
    return GuardDecision.RENDER


class RouteGuard:
    """Protects a view; redirects to ``login_path`` whenever auth is lost."""

    def __init__(self, session: AuthSession, navigate: Optional[Navigator] = None, login_path: str = "/login") -> None:
        self._navigate = navigate or _noop
        self.login_path = login_path
        self.decision = guard_decision(session.snapshot)
        self._unsubscribe = session.subscribe(self._evaluate)
        if self.decision is GuardDecision.REDIRECT:
            self._navigate(self.login_path)

    def _evaluate(self, snapshot: AuthSnapshot) -> None:
        decision = guard_decision(snapshot)
        if decision is GuardDecision.REDIRECT and self.decision is not GuardDecision.REDIRECT:
            self._navigate(self.login_path)
        self.decision = decision

    def close(self) -> None:
        self._unsubscribe()
