from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class RegisterMetadata(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    user_metadata: Optional[RegisterMetadata] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ProfileMetadata(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    email: Optional[EmailStr] = None
    user_metadata: Optional[ProfileMetadata] = None


class CurrentUser(BaseModel):
    """Minimal identity resolved from a verified bearer token."""
    id: str
    email: Optional[str] = None
    role: str = "authenticated"
