"""
Think Nest Backend — Security Primitives
=========================================

What:  Password hashing, JWT issue/verify, token hashing and one-time codes.
Who:   AuthService and the auth dependency.

Token Model:
    access token   JWT, 15 min, sent as Bearer header or accessToken cookie
    refresh token  JWT, 7 days, httpOnly refreshToken cookie; only its
                   SHA-256 digest is stored on the user row
    one-time code  6 digits, SHA-256 digest stored, 10 min expiry

Access and refresh tokens are signed with different secrets and carry a
"type" claim, so one can never be replayed as the other.
"""

import hashlib
import secrets
import time
from typing import Any, Dict, Optional

import bcrypt
import jwt

from thinknest.config import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """A JWT failed signature, expiry or type checks."""


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(plain_password: str) -> str:
    # bcrypt only looks at the first 72 bytes; longer inputs are rejected by
    # recent bcrypt releases, so truncate explicitly
    password = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:72],
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False


# ── JWT ───────────────────────────────────────────────────────────────────

def _encode(payload: Dict[str, Any], secret: str, lifetime_seconds: int) -> str:
    issued_at = int(time.time())
    claims = {**payload, "iat": issued_at, "exp": issued_at + lifetime_seconds}
    return jwt.encode(claims, secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, secret: str, expected_type: str) -> Dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise TokenError("Token is empty.")
    try:
        payload = jwt.decode(
            raw,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.InvalidTokenError as exc:
        raise TokenError(str(exc)) from exc

    if payload.get("type") != expected_type:
        raise TokenError(f"Token is not an {expected_type} token.")
    return payload


def create_access_token(user_id: str) -> str:
    return _encode(
        {"sub": user_id, "type": ACCESS_TOKEN_TYPE},
        settings.jwt_access_secret,
        settings.access_token_expire_minutes * 60,
    )


def create_refresh_token(user_id: str) -> str:
    # jti makes two refresh tokens minted in the same second distinct, which
    # rotation depends on
    return _encode(
        {"sub": user_id, "type": REFRESH_TOKEN_TYPE, "jti": secrets.token_hex(16)},
        settings.jwt_refresh_secret,
        settings.refresh_token_expire_days * 24 * 3600,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    return _decode(token, settings.jwt_access_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    return _decode(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)


# ── Opaque secrets at rest ────────────────────────────────────────────────

def hash_token(token: str) -> str:
    """SHA-256 hex digest used for refresh tokens and one-time codes."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_numeric_code() -> str:
    """Six-digit code in [100000, 999999] from the OS CSPRNG."""
    return str(100000 + secrets.randbelow(900000))
