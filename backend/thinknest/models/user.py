"""
Think Nest Backend — User SQLAlchemy Model
===========================================

What:  ORM model representing the `users` table.
Who:   Used by AuthService for accounts, sessions and password flows, and by
       the auth dependency to resolve the current user.

Column Design:
    - Secrets are stored only as hashes: bcrypt for passwords (slow, salted),
      SHA-256 hex for refresh tokens and one-time codes (high-entropy or
      short-lived, looked up by equality).
    - One refresh token hash per user: logging in elsewhere replaces it.
    - pending_password_hash holds the already-hashed new password between the
      change request and its email verification.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thinknest.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A registered account."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Stored lowercased and trimmed; uniqueness is therefore case-insensitive
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Session ───────────────────────────────────────────────────────────
    refresh_token_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # ── Password reset (forgot password) ──────────────────────────────────
    reset_password_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True
    )
    reset_password_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ── Password change (signed-in, email-verified) ───────────────────────
    password_change_token_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    password_change_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pending_password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def clear_reset_token(self) -> None:
        self.reset_password_token_hash = None
        self.reset_password_expires_at = None

    def clear_password_change(self) -> None:
        self.password_change_token_hash = None
        self.password_change_expires_at = None
        self.pending_password_hash = None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
