"""
Think Nest Backend — Note SQLAlchemy Models
============================================

What:  ORM models for the `notes` and `note_tags` tables.
Who:   Used by NoteService for CRUD, filtering and stats, and by Alembic.

Table Design Rationale:
    - user_id on every note: every query is scoped by owner, so it leads
      the composite indexes.
    - Tags live in their own table (one row per note/tag) instead of an
      array column so tag filters and "top tags" are plain joins and
      GROUP BYs on any backend.
    - position keeps the order the user typed the tags in.

Query Patterns:
    - List a user's notes, newest first:
      WHERE user_id = :uid AND is_archived = false ORDER BY created_at DESC
      → idx_notes_user_created
    - Pinned-first boards: idx_notes_user_pinned_created
    - Tag filter / top tags: idx_note_tags_tag
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thinknest.database import Base
from thinknest.models.user import utc_now

DEFAULT_NOTE_COLOR = "#ffffff"
TITLE_MAX_LENGTH = 200
TAG_MAX_LENGTH = 50


class NoteTag(Base):
    """One tag attached to one note."""

    __tablename__ = "note_tags"

    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(TAG_MAX_LENGTH), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_note_tags_tag", "tag"),)

    def __repr__(self) -> str:
        return f"<NoteTag(note_id={self.note_id}, tag='{self.tag}')>"


class Note(Base):
    """
    A user's note.

    Lifecycle:
        1. Created active (is_archived = false), unpinned unless requested
        2. Edited, pinned/unpinned, archived/unarchived any number of times
        3. Hard-deleted (single or bulk); tag rows go with it
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    is_pinned: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    # Hex color or CSS gradient string; validated in NoteService
    color: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_NOTE_COLOR)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # selectin: async sessions cannot lazy-load, so tags are fetched with the note
    tag_links: Mapped[List[NoteTag]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=NoteTag.position,
    )

    @property
    def tags(self) -> List[str]:
        return [link.tag for link in self.tag_links]

    def set_tags(self, tags: List[str]) -> None:
        """
        Replace the note's tags, keeping rows for tags that survive.

        Reusing existing NoteTag rows avoids deleting and re-inserting the
        same primary key within one flush.
        """
        existing = {link.tag: link for link in self.tag_links}
        links = []
        for position, tag in enumerate(tags):
            link = existing.get(tag) or NoteTag(tag=tag)
            link.position = position
            links.append(link)
        self.tag_links = links

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title[:20]}', pinned={self.is_pinned})>"


Index("idx_notes_user_created", Note.user_id, Note.created_at.desc())
Index(
    "idx_notes_user_pinned_created",
    Note.user_id,
    Note.is_pinned.desc(),
    Note.created_at.desc(),
)
