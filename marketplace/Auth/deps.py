"""Bearer-token authentication dependencies.

``bearer_token`` only reads the header (401 when absent) and does no I/O, so
routes with a request body can let FastAPI reject a malformed payload before
the token is sent to the identity provider; those routes call
``authenticate`` themselves once the body has validated. ``require_auth``
does both steps as a single dependency for routes without a body.
``optional_auth`` performs the same verification but lets the request
through anonymously on any failure, and does not build a token-bound client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.common.errors import Unauthorized, UpstreamError
from marketplace.DB.supabase import create_user_client
from .schemas import CurrentUser
from .service import fetch_user, to_current_user

logger = logging.getLogger("auth.deps")
security = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user: CurrentUser
    token: str
    supabase: Any = None  # AsyncClient bound to ``token``; None for optional auth
    provider_user: Any = field(default=None, repr=False)


async def _verify(request: Request, token: str, bind_client: bool = True) -> AuthContext:
    provider_user = await fetch_user(token)
    if provider_user is None:
        raise LookupError("no user associated with this token")
    current = to_current_user(provider_user)
    ctx = AuthContext(user=current, token=token, provider_user=provider_user)
    if bind_client:
        ctx.supabase = await create_user_client(token)
        request.state.supabase = ctx.supabase
    request.state.user = current

    request_id = getattr(request.state, "request_id", None)
    logger.info(
        "auth_resolved user_id=%s role=%s request_id=%s path=%s",
        current.id,
        current.role,
        request_id,
        request.url.path,
    )
    return ctx


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing or invalid authorization header")
    return credentials.credentials


async def authenticate(request: Request, token: str) -> AuthContext:
    """Verify ``token`` with the provider; any rejection becomes a 401."""
    try:
        return await _verify(request, token)
    except UpstreamError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.warning("JWT verification failed path=%s: %s", request.url.path, type(exc).__name__)
        raise Unauthorized("Invalid or expired token") from exc


async def require_auth(request: Request, token: str = Depends(bearer_token)) -> AuthContext:
    return await authenticate(request, token)


async def optional_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthContext]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await _verify(request, credentials.credentials, bind_client=False)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Optional JWT verification failed path=%s: %s", request.url.path, type(exc).__name__)
        return None
