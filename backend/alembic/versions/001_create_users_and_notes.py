"""Create users, notes and note_tags tables

Revision ID: 001
Revises: None
Create Date: 2025-01-10 00:00:00.000000+00:00

What:  Initial schema: accounts (with hashed session/reset state), notes,
       and one row per note tag.
How:   Portable column types (sa.Uuid, TIMESTAMP WITH TIME ZONE) so the same
       migration runs on PostgreSQL and SQLite. Ids are generated by the
       application, so there are no server-side UUID defaults.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Trimmed and lowercased before storage",
        ),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt"),
        sa.Column(
            "refresh_token_hash",
            sa.String(64),
            nullable=True,
            comment="SHA-256 hex of the only valid refresh token",
        ),
        sa.Column("reset_password_token_hash", sa.String(64), nullable=True),
        sa.Column("reset_password_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("password_change_token_hash", sa.String(64), nullable=True),
        sa.Column("password_change_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "pending_password_hash",
            sa.String(255),
            nullable=True,
            comment="bcrypt of the new password awaiting email verification",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index(
        "ix_users_reset_password_token_hash", "users", ["reset_password_token_hash"]
    )

    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "color",
            sa.String(255),
            server_default=sa.text("'#ffffff'"),
            nullable=False,
            comment="Hex color or linear-gradient(...) string",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notes_user_id", "notes", ["user_id"])
    # Default listing: a user's notes, newest first
    op.create_index(
        "idx_notes_user_created",
        "notes",
        ["user_id", sa.text("created_at DESC")],
    )
    op.create_index(
        "idx_notes_user_pinned_created",
        "notes",
        ["user_id", sa.text("is_pinned DESC"), sa.text("created_at DESC")],
    )

    op.create_table(
        "note_tags",
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("tag", sa.String(50), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("note_id", "tag"),
    )
    # Tag filter and top-tags GROUP BY
    op.create_index("idx_note_tags_tag", "note_tags", ["tag"])


def downgrade() -> None:
    op.drop_index("idx_note_tags_tag", table_name="note_tags")
    op.drop_table("note_tags")
    op.drop_index("idx_notes_user_pinned_created", table_name="notes")
    op.drop_index("idx_notes_user_created", table_name="notes")
    op.drop_index("ix_notes_user_id", table_name="notes")
    op.drop_table("notes")
    op.drop_index("ix_users_reset_password_token_hash", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
