"""
Think Nest Backend — Note Request/Response Schemas
===================================================

What:  Pydantic models defining the notes API contract.
Why:   Schemas are separate from SQLAlchemy models so the wire format
       (camelCase, tag list, pagination block) can differ from the tables.
"""

import uuid
from typing import Any, List, Optional

from pydantic import Field

from thinknest.schemas.common import CamelModel, UtcDatetime


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class NoteCreateRequest(CamelModel):
    """
    Body of POST /api/notes.

    title/content are optional here so NoteService can answer with
    "Title and content are required" rather than a schema error.
    """
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    color: Optional[str] = None
    is_pinned: Optional[bool] = None


class NoteUpdateRequest(CamelModel):
    """Body of PUT /api/notes/{id}; only fields that are present are applied."""
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    color: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None


class BulkDeleteRequest(CamelModel):
    # Loosely typed: a non-list value must yield the service's 400 message
    note_ids: Any = None


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(CamelModel):
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    user: uuid.UUID = Field(validation_alias="user_id", description="Owner id")
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    is_pinned: bool
    is_archived: bool
    color: str
    created_at: UtcDatetime = Field(description="Creation timestamp (UTC)")
    updated_at: UtcDatetime = Field(description="Last modification timestamp (UTC)")


class NoteData(CamelModel):
    note: NoteResponse


class Pagination(CamelModel):
    """
    Offset pagination block.

    total_pages = ceil(total_notes / limit); has_more = current_page < total_pages.
    """
    current_page: int
    total_pages: int
    total_notes: int
    has_more: bool


class NoteListData(CamelModel):
    notes: List[NoteResponse]
    pagination: Pagination


class NoteStats(CamelModel):
    total: int = 0
    pinned: int = 0
    archived: int = 0
    active: int = 0


class TagCount(CamelModel):
    tag: str
    count: int


class NoteStatsData(CamelModel):
    stats: NoteStats
    top_tags: List[TagCount]


class BulkDeleteData(CamelModel):
    deleted_count: int
