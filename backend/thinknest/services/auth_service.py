"""
Think Nest Backend — Auth Service (Accounts, Sessions, Password Flows)
=======================================================================

What:  Business logic for signup/login, token refresh, profile edits and the
       reset / verified-change password flows.
How:   Receives an AsyncSession per call; returns domain results that routes
       turn into envelopes and cookies. Never touches HTTP objects.

Session Flow:
    signup/login ──▶ issue access JWT + refresh JWT, store sha256(refresh)
    refresh      ──▶ verify JWT, match sha256 against the stored hash,
                     rotate (new pair, new stored hash)
    logout / password reset / password change ──▶ clear stored hash

One-Time Code Flow (reset and verified change):
    request ──▶ 6-digit code, sha256 stored with expiry, code emailed
    verify  ──▶ look up by sha256 + unexpired, consume (clear) on success
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from thinknest import security
from thinknest.config import settings
from thinknest.exceptions import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from thinknest.models.user import User
from thinknest.services.mail_base import MailService
from thinknest.services.mail_service import mail_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
NAME_MAX_LENGTH = 100
RESET_CODE_ATTEMPTS = 10
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
INVALID_CHANGE_CODE = "Invalid or expired verification code"
PASSWORD_MISMATCH = "Passwords do not match"
PASSWORD_TOO_SHORT = "Password must be at least 8 characters long"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class AuthService:
    """
    Stateless account/session logic.

    Error Handling Strategy:
        Business rule failures raise ValidationError (400) or
        AuthenticationError (401). Unexpected SQLAlchemy errors are wrapped
        in DatabaseError; the route's session dependency rolls back.
    """

    def __init__(self, mailer: MailService = mail_service):
        self.mailer = mailer

    # ══════════════════════════════════════════════════════════════════════
    # Lookups
    # ══════════════════════════════════════════════════════════════════════

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _require_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await self.get_user(db, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    # ══════════════════════════════════════════════════════════════════════
    # Token issue / rotation
    # ══════════════════════════════════════════════════════════════════════

    async def _issue_tokens(self, db: AsyncSession, user: User) -> TokenPair:
        """Mint a token pair and make its refresh token the only valid one."""
        subject = str(user.id)
        pair = TokenPair(
            access_token=security.create_access_token(subject),
            refresh_token=security.create_refresh_token(subject),
        )
        user.refresh_token_hash = security.hash_token(pair.refresh_token)
        await db.flush()
        return pair

    def _validate_new_password(
        self,
        new_password: Optional[str],
        confirm_password: Optional[str],
    ) -> str:
        if new_password != confirm_password:
            raise ValidationError(PASSWORD_MISMATCH, field="confirmPassword")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(PASSWORD_TOO_SHORT, field="newPassword")
        return new_password

    # ══════════════════════════════════════════════════════════════════════
    # Signup / login / refresh / logout
    # ══════════════════════════════════════════════════════════════════════

    async def signup(
        self,
        db: AsyncSession,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResult:
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise ValidationError("Please provide all required fields")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"Name cannot exceed {NAME_MAX_LENGTH} characters", field="name"
            )
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please provide a valid email address", field="email")

        try:
            if await self._find_by_email(db, email) is not None:
                raise ValidationError("Email already registered", field="email")
            if len(password) < MIN_PASSWORD_LENGTH:
                raise ValidationError(PASSWORD_TOO_SHORT, field="password")

            now = utc_now()
            user = User(
                id=uuid.uuid4(),
                name=name,
                email=email,
                password_hash=security.hash_password(password),
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            await db.flush()
            tokens = await self._issue_tokens(db, user)
        except IntegrityError:
            # A concurrent signup took the address between the lookup and the insert
            logger.info("Signup lost the race for an email address")
            raise ValidationError("Email already registered", field="email")
        except SQLAlchemyError as e:
            logger.error("Database error during signup: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the account. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User %s signed up", user.id)
        return AuthResult(user=user, tokens=tokens)

    async def login(
        self,
        db: AsyncSession,
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResult:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("Please provide email and password")

        user = await self._find_by_email(db, email)
        # Same message for unknown email and wrong password
        if user is None or not security.verify_password(password, user.password_hash):
            logger.info("Failed login attempt")
            raise AuthenticationError(INVALID_CREDENTIALS)

        tokens = await self._issue_tokens(db, user)
        logger.info("User %s logged in", user.id)
        return AuthResult(user=user, tokens=tokens)

    async def refresh(self, db: AsyncSession, refresh_token: Optional[str]) -> TokenPair:
        """
        Rotate the session.

        The JWT must verify AND its hash must equal the stored one; a token
        that was already rotated away (or revoked by logout) fails the second
        check even while its signature is still valid.
        """
        if not refresh_token:
            raise AuthenticationError("Refresh token not found")

        try:
            payload = security.decode_refresh_token(refresh_token)
            user_id = uuid.UUID(str(payload["sub"]))
        except (security.TokenError, ValueError):
            raise AuthenticationError("Invalid or expired refresh token")

        user = await self.get_user(db, user_id)
        if user is None or user.refresh_token_hash != security.hash_token(refresh_token):
            logger.warning("Rejected refresh token for user %s", user_id)
            raise AuthenticationError("Invalid refresh token")

        return await self._issue_tokens(db, user)

    async def logout(self, db: AsyncSession, user: User) -> None:
        user.refresh_token_hash = None
        await db.flush()
        logger.info("User %s logged out", user.id)

    # ══════════════════════════════════════════════════════════════════════
    # Profile
    # ══════════════════════════════════════════════════════════════════════

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        name: Optional[str],
        email: Optional[str],
    ) -> User:
        if name is not None and name.strip():
            if len(name.strip()) > NAME_MAX_LENGTH:
                raise ValidationError(
                    f"Name cannot exceed {NAME_MAX_LENGTH} characters", field="name"
                )
            user.name = name.strip()

        if email is not None and email.strip():
            new_email = normalize_email(email)
            if not EMAIL_PATTERN.match(new_email):
                raise ValidationError("Please provide a valid email address", field="email")
            if new_email != user.email:
                existing = await self._find_by_email(db, new_email)
                if existing is not None and existing.id != user.id:
                    raise ValidationError("Email already registered", field="email")
                user.email = new_email

        user.updated_at = utc_now()
        try:
            await db.flush()
        except IntegrityError:
            raise ValidationError("Email already registered", field="email")
        return user

    async def update_username(self, db: AsyncSession, user: User, name: Optional[str]) -> User:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please provide a name", field="name")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"Name cannot exceed {NAME_MAX_LENGTH} characters", field="name"
            )
        user.name = name
        user.updated_at = utc_now()
        await db.flush()
        return user

    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        """Direct change with the current password; signs the user out everywhere."""
        if not current_password or not new_password:
            raise ValidationError("Please provide current and new password")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "New password must be at least 8 characters long", field="newPassword"
            )
        if not security.verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = security.hash_password(new_password)
        user.refresh_token_hash = None
        user.updated_at = utc_now()
        await db.flush()
        logger.info("User %s changed password; sessions revoked", user.id)

    # ══════════════════════════════════════════════════════════════════════
    # Forgot / reset password
    # ══════════════════════════════════════════════════════════════════════

    async def forgot_password(self, db: AsyncSession, email: Optional[str]) -> None:
        """
        Issue and mail a reset code when the account exists.

        Returns normally for unknown addresses so the response cannot reveal
        which emails are registered.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Please provide your email address", field="email")

        user = await self._find_by_email(db, email)
        if user is None:
            logger.info("Password reset requested for unknown address")
            return

        code = await self._unused_reset_code(db, user)
        user.reset_password_token_hash = security.hash_token(code)
        user.reset_password_expires_at = utc_now() + timedelta(
            minutes=settings.reset_token_expire_minutes
        )
        await db.flush()

        try:
            await self.mailer.send_reset_code(user.email, user.name, code)
        except Exception:
            # An undeliverable code must not stay valid
            user.clear_reset_token()
            await db.flush()
            raise
        logger.info("Password reset code issued for user %s", user.id)

    async def _unused_reset_code(self, db: AsyncSession, user: User) -> str:
        """
        A code no other account currently holds.

        Reset codes are looked up by hash alone, so a live duplicate would let
        its holder reset somebody else's password.
        """
        for _ in range(RESET_CODE_ATTEMPTS):
            code = security.generate_numeric_code()
            taken = (
                await db.execute(
                    select(func.count(User.id)).where(
                        User.id != user.id,
                        User.reset_password_token_hash == security.hash_token(code),
                        User.reset_password_expires_at > utc_now(),
                    )
                )
            ).scalar()
            if not taken:
                return code
        logger.error("No free reset code after %d attempts", RESET_CODE_ATTEMPTS)
        raise DatabaseError(
            message="Could not issue a reset code. Please try again.",
            context={"attempts": RESET_CODE_ATTEMPTS},
        )

    async def _find_by_reset_code(self, db: AsyncSession, code: Optional[str]) -> User:
        result = await db.execute(
            select(User).where(
                User.reset_password_token_hash == security.hash_token(code),
                User.reset_password_expires_at > utc_now(),
            )
        )
        user = result.scalars().first()
        if user is None:
            raise ValidationError(INVALID_RESET_TOKEN, field="token")
        return user

    async def verify_reset_token(self, db: AsyncSession, token: Optional[str]) -> str:
        """Check a reset code without consuming it; returns the account email."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Please provide reset token", field="token")
        user = await self._find_by_reset_code(db, token)
        return user.email

    async def reset_password(
        self,
        db: AsyncSession,
        token: Optional[str],
        new_password: Optional[str],
        confirm_password: Optional[str],
    ) -> None:
        token = (token or "").strip()
        if not token or not new_password or not confirm_password:
            raise ValidationError("Please provide token, new password and confirm password")
        self._validate_new_password(new_password, confirm_password)

        user = await self._find_by_reset_code(db, token)
        user.password_hash = security.hash_password(new_password)
        user.clear_reset_token()
        user.refresh_token_hash = None
        user.updated_at = utc_now()
        await db.flush()
        logger.info("Password reset completed for user %s; sessions revoked", user.id)

    # ══════════════════════════════════════════════════════════════════════
    # Verified password change (signed in)
    # ══════════════════════════════════════════════════════════════════════

    async def request_password_change(
        self,
        db: AsyncSession,
        user: User,
        new_password: Optional[str],
        confirm_password: Optional[str],
    ) -> None:
        """
        Park the hashed new password and mail a confirmation code.

        The password only changes once verify_password_change() sees the code.
        """
        if not new_password or not confirm_password:
            raise ValidationError("Please provide new password and confirm password")
        self._validate_new_password(new_password, confirm_password)

        code = security.generate_numeric_code()
        user.pending_password_hash = security.hash_password(new_password)
        user.password_change_token_hash = security.hash_token(code)
        user.password_change_expires_at = utc_now() + timedelta(
            minutes=settings.reset_token_expire_minutes
        )
        await db.flush()

        try:
            await self.mailer.send_password_change_code(user.email, user.name, code)
        except Exception:
            user.clear_password_change()
            await db.flush()
            raise
        logger.info("Password change code issued for user %s", user.id)

    async def verify_password_change(
        self,
        db: AsyncSession,
        user: User,
        token: Optional[str],
    ) -> TokenPair:
        """Apply the pending password and keep the user signed in with a fresh pair."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Please provide verification code", field="token")

        expires_at = as_utc(user.password_change_expires_at)
        if (
            not user.pending_password_hash
            or not user.password_change_token_hash
            or expires_at is None
            or expires_at <= utc_now()
            or user.password_change_token_hash != security.hash_token(token)
        ):
            raise ValidationError(INVALID_CHANGE_CODE, field="token")

        user.password_hash = user.pending_password_hash
        user.clear_password_change()
        user.updated_at = utc_now()
        tokens = await self._issue_tokens(db, user)
        logger.info("User %s confirmed password change", user.id)
        return tokens


auth_service = AuthService()
