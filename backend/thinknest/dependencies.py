"""
Think Nest Backend — Request Dependencies
=========================================

get_current_user resolves the signed-in User for protected routes.

Token lookup order:
    1. Authorization: Bearer <token>
    2. accessToken cookie (set by login/signup/refresh)
"""

import logging
import uuid
from typing import Optional

from fastapi import Cookie, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from thinknest import security
from thinknest.database import get_db_session
from thinknest.exceptions import AuthenticationError
from thinknest.models.user import User
from thinknest.services.auth_service import auth_service

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    raw = (authorization or "").strip()
    parts = raw.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


async def get_access_token(
    authorization: Optional[str] = Header(default=None),
    access_cookie: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
) -> str:
    token = extract_bearer_token(authorization) or access_cookie
    if not token:
        raise AuthenticationError("Not authorized to access this route. Please login.")
    return token


async def get_current_user(
    token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    try:
        payload = security.decode_access_token(token)
        user_id = uuid.UUID(str(payload["sub"]))
    except (security.TokenError, ValueError):
        raise AuthenticationError("Token is invalid or expired. Please login again.")

    user = await auth_service.get_user(db, user_id)
    if user is None:
        logger.warning("Valid token for missing user %s", user_id)
        raise AuthenticationError("User not found. Token is invalid.")
    return user
