"""
Think Nest Backend — Auth Route Handlers
=========================================

What:  /api/auth endpoints: signup, login, refresh, logout, profile and the
       password reset / change flows.
How:   Thin handlers. AuthService does the work; handlers shape the envelope
       and manage the auth cookies.

Cookies:
    accessToken   httpOnly, SameSite=Strict, max-age = access token lifetime
    refreshToken  httpOnly, SameSite=Strict, max-age = refresh token lifetime
    Secure when COOKIE_SECURE is on. The access token is also returned in
    the body for clients that prefer the Authorization header.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from thinknest.config import settings
from thinknest.database import get_db_session
from thinknest.dependencies import ACCESS_COOKIE, REFRESH_COOKIE, get_current_user
from thinknest.models.user import User
from thinknest.schemas.auth import (
    AccessTokenData,
    AuthData,
    ChangePasswordRequest,
    EmailData,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordChangeRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenRequest,
    UpdateProfileRequest,
    UpdateUsernameRequest,
    UserData,
    UserResponse,
)
from thinknest.schemas.common import ApiResponse, ErrorResponse
from thinknest.services.auth_service import TokenPair, auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
}


# ── Cookie helpers ────────────────────────────────────────────────────────

def set_auth_cookies(response: Response, tokens: TokenPair) -> None:
    common = {"httponly": True, "secure": settings.cookie_secure, "samesite": "strict"}
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **common,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        **common,
    )


def clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name, httponly=True, secure=settings.cookie_secure, samesite="strict"
        )


def user_payload(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


# ══════════════════════════════════════════════════════════════════════════
# Sessions
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/signup",
    status_code=201,
    response_model=ApiResponse[AuthData],
    responses=ERROR_RESPONSES,
    summary="Create an account and sign in",
)
async def signup(
    body: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AuthData]:
    result = await auth_service.signup(db, body.name, body.email, body.password)
    set_auth_cookies(response, result.tokens)
    return ApiResponse(
        message="User registered successfully",
        data=AuthData(user=user_payload(result.user), access_token=result.tokens.access_token),
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthData],
    responses=ERROR_RESPONSES,
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AuthData]:
    result = await auth_service.login(db, body.email, body.password)
    set_auth_cookies(response, result.tokens)
    return ApiResponse(
        message="Login successful",
        data=AuthData(user=user_payload(result.user), access_token=result.tokens.access_token),
    )


@router.post(
    "/refresh",
    response_model=ApiResponse[AccessTokenData],
    responses=ERROR_RESPONSES,
    summary="Rotate the refresh token and issue a new access token",
)
async def refresh(
    response: Response,
    body: Optional[RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AccessTokenData]:
    """The cookie wins; the body field only serves clients without cookie support."""
    token = refresh_cookie or (body.refresh_token if body else None)
    tokens = await auth_service.refresh(db, token)
    set_auth_cookies(response, tokens)
    return ApiResponse(
        message="Token refreshed successfully",
        data=AccessTokenData(access_token=tokens.access_token),
    )


@router.post(
    "/logout",
    response_model=ApiResponse[None],
    responses=ERROR_RESPONSES,
    summary="Revoke the refresh token and clear cookies",
)
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await auth_service.logout(db, user)
    clear_auth_cookies(response)
    return ApiResponse(message="Logout successful")


# ══════════════════════════════════════════════════════════════════════════
# Profile
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/me",
    response_model=ApiResponse[UserData],
    responses=ERROR_RESPONSES,
    summary="Current user's profile",
)
async def me(user: User = Depends(get_current_user)) -> ApiResponse[UserData]:
    return ApiResponse(
        message="User profile retrieved successfully",
        data=UserData(user=user_payload(user)),
    )


@router.put(
    "/update-profile",
    response_model=ApiResponse[UserData],
    responses=ERROR_RESPONSES,
    summary="Update name and/or email",
)
async def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UserData]:
    user = await auth_service.update_profile(db, user, body.name, body.email)
    return ApiResponse(
        message="Profile updated successfully",
        data=UserData(user=user_payload(user)),
    )


@router.put(
    "/profile/name",
    response_model=ApiResponse[UserData],
    responses=ERROR_RESPONSES,
    summary="Change the display name",
)
async def update_username(
    body: UpdateUsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UserData]:
    user = await auth_service.update_username(db, user, body.name)
    return ApiResponse(
        message="Name updated successfully",
        data=UserData(user=user_payload(user)),
    )


@router.put(
    "/change-password",
    response_model=ApiResponse[None],
    responses=ERROR_RESPONSES,
    summary="Change password with the current password; signs out everywhere",
)
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await auth_service.change_password(db, user, body.current_password, body.new_password)
    clear_auth_cookies(response)
    return ApiResponse(message="Password changed successfully. Please log in again.")


@router.post(
    "/profile/change-password-request",
    response_model=ApiResponse[None],
    responses={
        **ERROR_RESPONSES,
        503: {"description": "Mail delivery failed", "model": ErrorResponse},
    },
    summary="Email a code confirming a new password",
)
async def request_password_change(
    body: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await auth_service.request_password_change(
        db, user, body.new_password, body.confirm_password
    )
    return ApiResponse(message="Verification code sent to your email")


@router.post(
    "/profile/verify-password-change",
    response_model=ApiResponse[AccessTokenData],
    responses=ERROR_RESPONSES,
    summary="Confirm the emailed code and apply the new password",
)
async def verify_password_change(
    body: TokenRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AccessTokenData]:
    tokens = await auth_service.verify_password_change(db, user, body.token)
    set_auth_cookies(response, tokens)
    return ApiResponse(
        message="Password changed successfully",
        data=AccessTokenData(access_token=tokens.access_token),
    )


# ══════════════════════════════════════════════════════════════════════════
# Forgot / reset password (public)
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/forgot-password",
    response_model=ApiResponse[None],
    responses={
        400: {"description": "Missing email", "model": ErrorResponse},
        503: {"description": "Mail delivery failed", "model": ErrorResponse},
    },
    summary="Email a password reset code",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    """Same answer whether or not the address is registered."""
    await auth_service.forgot_password(db, body.email)
    return ApiResponse(
        message="If an account exists with that email, a password reset code has been sent"
    )


@router.post(
    "/verify-reset-token",
    response_model=ApiResponse[EmailData],
    responses=ERROR_RESPONSES,
    summary="Check a reset code without using it",
)
async def verify_reset_token(
    body: TokenRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[EmailData]:
    email = await auth_service.verify_reset_token(db, body.token)
    return ApiResponse(message="Reset token is valid", data=EmailData(email=email))


@router.post(
    "/reset-password",
    response_model=ApiResponse[None],
    responses=ERROR_RESPONSES,
    summary="Set a new password with a reset code",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await auth_service.reset_password(
        db, body.token, body.new_password, body.confirm_password
    )
    return ApiResponse(
        message="Password reset successfully. Please log in with your new password."
    )
