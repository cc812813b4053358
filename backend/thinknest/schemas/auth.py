"""
Think Nest Backend — Auth Request/Response Schemas
===================================================

Request fields are all optional at the schema level: missing values are
reported by AuthService with the same 400 messages the SPA already shows,
instead of FastAPI's generic 422 field errors.
"""

import uuid
from typing import Optional

from pydantic import Field

from thinknest.schemas.common import CamelModel, UtcDatetime


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class SignupRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(CamelModel):
    """Fallback for clients that cannot send the refreshToken cookie."""
    refresh_token: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None


class UpdateUsernameRequest(CamelModel):
    name: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class TokenRequest(CamelModel):
    """Body of verify-reset-token and verify-password-change."""
    token: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class PasswordChangeRequest(CamelModel):
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    created_at: Optional[UtcDatetime] = Field(default=None)


class UserData(CamelModel):
    user: UserResponse


class AuthData(CamelModel):
    """Payload of signup and login."""
    user: UserResponse
    access_token: str


class AccessTokenData(CamelModel):
    access_token: str


class EmailData(CamelModel):
    email: str
