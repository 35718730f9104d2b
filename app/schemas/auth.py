"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import Field

from app.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """New account; user_type is one of PRODUTOR, COOPERATIVA, COMPRADOR."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    user_type: str = Field(..., min_length=1, max_length=32)


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token from login/register")


class LogoutRequest(CamelModel):
    refresh_token: str | None = Field(default=None, description="Refresh token to revoke")


class UpdateProfileRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255)


class UserOut(CamelModel):
    """Public view of a user (no password hash)."""

    id: str
    name: str
    email: str
    user_type: str


class ProfileOut(UserOut):
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    """Access token, refresh token and the authenticated user."""

    token: str = Field(..., description="JWT access token (send as Authorization: Bearer <token>)")
    refresh_token: str = Field(..., description="Refresh token for POST /auth/refresh-token")
    user: UserOut


class CurrentUser(CamelModel):
    """Authenticated user (id, email, role) for dependency injection."""

    id: str
    name: str
    email: str
    role: str
