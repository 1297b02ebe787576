import logging

from fastapi import APIRouter, Depends, Request, status
from supabase import AuthError

from marketplace.common.errors import ApiError, Unauthorized, ValidationFailed, upstream_guard
from .deps import AuthContext, authenticate, bearer_token, require_auth
from .schemas import LoginRequest, ProfileUpdateRequest, RefreshRequest, RegisterRequest
from . import service

logger = logging.getLogger("auth.routes")

router = APIRouter(prefix="/auth", tags=["auth"])


def _provider_message(exc: AuthError) -> str:
    return getattr(exc, "message", None) or str(exc)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest):
    """Create an account. ``session`` is null when email confirmation is pending."""
    metadata = payload.user_metadata.model_dump(exclude_none=True) if payload.user_metadata else None
    with upstream_guard("Failed to register user", logger):
        try:
            user, session = await service.sign_up(payload.email, payload.password, metadata)
        except AuthError as exc:
            raise ValidationFailed(_provider_message(exc), error="Registration failed")
    logger.info("auth.register user_id=%s session=%s", (user or {}).get("id"), session is not None)
    return {"message": "User registered successfully", "user": user, "session": session}


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(payload: LoginRequest):
    with upstream_guard("Failed to login", logger):
        try:
            user, session = await service.sign_in(payload.email, payload.password)
        except AuthError as exc:
            raise Unauthorized(_provider_message(exc), error="Login failed")
    return {"message": "Login successful", "user": user, "session": session}


@router.post("/logout")
async def logout(auth: AuthContext = Depends(require_auth)):
    with upstream_guard("Failed to logout", logger):
        try:
            await service.sign_out(auth.token)
        except AuthError as exc:
            raise ApiError(_provider_message(exc), error="Logout failed", status_code=status.HTTP_400_BAD_REQUEST)
    return {"message": "Logout successful"}


@router.get("/profile")
async def profile(auth: AuthContext = Depends(require_auth)):
    """Identity-provider record of the caller (resolved during verification)."""
    return {"user": service.clean_user(auth.provider_user)}


@router.put("/profile")
async def update_profile(payload: ProfileUpdateRequest, request: Request, token: str = Depends(bearer_token)):
    auth = await authenticate(request, token)
    metadata = payload.user_metadata.model_dump(exclude_none=True) if payload.user_metadata else None
    with upstream_guard("Failed to update profile", logger):
        try:
            user = await service.update_user(auth.user.id, payload.email, metadata)
        except AuthError as exc:
            raise ValidationFailed(_provider_message(exc), error="Failed to update profile")
    return {"message": "Profile updated successfully", "user": user}


@router.post("/refresh")
async def refresh(payload: RefreshRequest):
    with upstream_guard("Failed to refresh token", logger):
        try:
            session = await service.refresh(payload.refresh_token)
        except AuthError as exc:
            raise Unauthorized(_provider_message(exc), error="Token refresh failed")
    if session is None:
        raise Unauthorized("No session returned for this refresh token", error="Token refresh failed")
    return {"message": "Token refreshed successfully", "session": session}
