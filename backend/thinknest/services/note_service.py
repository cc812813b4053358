"""
Think Nest Backend — Note Service (Business Logic)
===================================================

What:  CRUD, filtering, pagination, pin/archive toggles and stats for a
       user's notes.
Why:   Keeps every ownership and validation rule in one place, independent
       of HTTP concerns.
How:   Receives an AsyncSession and the owner's id for each call; returns
       response schemas ready for the envelope.
Who:   Called by the /api/notes route handlers.

Ownership:
    Every query is filtered by user_id. A note that exists but belongs to
    somebody else is reported exactly like a missing one (404), so ids
    cannot be probed across accounts.

Sessions:
    NoteService holds no state. The request's session is passed into every
    call and the service only flushes; get_db_session owns commit/rollback.
"""

import logging
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import and_, asc, case, desc, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from thinknest.exceptions import DatabaseError, NotFoundError, ValidationError
from thinknest.models.note import (
    DEFAULT_NOTE_COLOR,
    TAG_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Note,
    NoteTag,
)
from thinknest.schemas.note import (
    NoteListData,
    NoteResponse,
    NoteStats,
    NoteStatsData,
    Pagination,
    TagCount,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
TOP_TAGS_LIMIT = 10

HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
GRADIENT_PREFIX = "linear-gradient("

SORT_COLUMNS = {
    "createdAt": Note.created_at,
    "updatedAt": Note.updated_at,
    "title": Note.title,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_note_id(value: Any) -> Optional[uuid.UUID]:
    """Returns None for anything that is not a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def normalize_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Trim, lowercase and de-duplicate, keeping first-seen order; blanks are dropped."""
    seen: List[str] = []
    for raw in tags or []:
        tag = str(raw).strip().lower()
        if not tag or tag in seen:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError(
                f"Tags cannot exceed {TAG_MAX_LENGTH} characters", field="tags"
            )
        seen.append(tag)
    return seen


def validate_color(color: str) -> str:
    color = color.strip()
    if HEX_COLOR.match(color) or color.startswith(GRADIENT_PREFIX):
        return color
    raise ValidationError(
        "Invalid color format. Must be hex color or CSS gradient", field="color"
    )


def escape_like(term: str) -> str:
    # Wildcards typed by the user are matched literally
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_response(note: Note) -> NoteResponse:
    return NoteResponse.model_validate(note)


class NoteService:
    """
    Business logic layer for note operations.

    Responsibilities:
        - list_notes(): filtered, sorted, offset-paginated listing
        - create/get/update/delete and bulk delete
        - toggle_pin() / toggle_archive()
        - get_stats(): counters and top tags

    Error Handling Strategy:
        Business rule failures raise ValidationError (400) or NotFoundError
        (404). SQLAlchemy errors are wrapped in DatabaseError (hides internal
        details); the session dependency rolls back.
    """

    # ══════════════════════════════════════════════════════════════════════
    # Lookups
    # ══════════════════════════════════════════════════════════════════════

    async def _get_owned(self, db: AsyncSession, user_id: uuid.UUID, note_id: Any) -> Note:
        parsed = parse_note_id(note_id)
        if parsed is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))

        result = await db.execute(
            select(Note).where(Note.id == parsed, Note.user_id == user_id)
        )
        note = result.scalar_one_or_none()
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(parsed))
        return note

    async def get_note(self, db: AsyncSession, user_id: uuid.UUID, note_id: Any) -> NoteResponse:
        """
        Retrieve a single note owned by user_id.

        Query plan:
            SELECT * FROM notes WHERE id = :uuid AND user_id = :uid
            → PRIMARY KEY lookup; tags loaded by a second selectin query

        Raises:
            NotFoundError: unknown id, another user's note, or malformed id (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            note = await self._get_owned(db, user_id, note_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            )
        return to_response(note)

    # ══════════════════════════════════════════════════════════════════════
    # Listing
    # ══════════════════════════════════════════════════════════════════════

    async def list_notes(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        search: Optional[str] = None,
        tags: Optional[str] = None,
        is_pinned: Optional[bool] = None,
        is_archived: Optional[bool] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> NoteListData:
        """
        List a user's notes with filters and offset pagination.

        Filters:
            search     : case-insensitive substring of title OR content
            tags       : comma-separated; a note matches if it has ANY of them
            is_pinned  : exact match when given
            is_archived: exact match when given; archived notes are hidden
                         when omitted

        Pagination:
            page/limit offset paging with a COUNT over the same filters:
            total_pages = ceil(total / limit), has_more = page < total_pages.
            An unknown sort_by falls back to createdAt; any sort_order other
            than "asc" sorts descending.
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        conditions = [Note.user_id == user_id]

        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            conditions.append(
                or_(
                    Note.title.ilike(pattern, escape="\\"),
                    Note.content.ilike(pattern, escape="\\"),
                )
            )

        tag_list = normalize_tags(tags.split(",")) if tags else []
        if tag_list:
            tagged = select(NoteTag.note_id).where(NoteTag.tag.in_(tag_list))
            conditions.append(Note.id.in_(tagged))

        if is_pinned is not None:
            conditions.append(Note.is_pinned == is_pinned)

        conditions.append(Note.is_archived == (is_archived if is_archived is not None else False))

        where_clause = and_(*conditions)
        sort_column = SORT_COLUMNS.get(sort_by, Note.created_at)
        direction = asc if sort_order == "asc" else desc

        try:
            count_result = await db.execute(select(func.count(Note.id)).where(where_clause))
            total = count_result.scalar() or 0

            result = await db.execute(
                select(Note)
                .where(where_clause)
                # id as tie-breaker keeps pages stable when sort values repeat
                .order_by(direction(sort_column), direction(Note.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            notes = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )

        total_pages = math.ceil(total / limit)
        return NoteListData(
            notes=[to_response(note) for note in notes],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_notes=total,
                has_more=page < total_pages,
            ),
        )

    # ══════════════════════════════════════════════════════════════════════
    # Create / update / delete
    # ══════════════════════════════════════════════════════════════════════

    async def create_note(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        title: Optional[str],
        content: Optional[str],
        tags: Optional[List[str]] = None,
        color: Optional[str] = None,
        is_pinned: Optional[bool] = None,
    ) -> NoteResponse:
        title = (title or "").strip()
        content = (content or "").strip()
        if not title or not content:
            raise ValidationError("Title and content are required")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title cannot exceed {TITLE_MAX_LENGTH} characters", field="title"
            )

        now = utc_now()
        note = Note(
            id=uuid.uuid4(),
            user_id=user_id,
            title=title,
            content=content,
            color=validate_color(color) if color else DEFAULT_NOTE_COLOR,
            is_pinned=bool(is_pinned),
            is_archived=False,
            created_at=now,
            updated_at=now,
        )
        note.set_tags(normalize_tags(tags))

        try:
            db.add(note)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating note: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Note %s created for user %s", note.id, user_id)
        return to_response(note)

    async def update_note(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        note_id: Any,
        fields: dict,
    ) -> NoteResponse:
        """
        Apply a partial update.

        fields holds only the keys the client sent (snake_case), so an
        explicit false/empty value is distinguishable from an omitted one.
        """
        note = await self._get_owned(db, user_id, note_id)

        if "title" in fields and fields["title"] is not None:
            if len(fields["title"].strip()) > TITLE_MAX_LENGTH:
                raise ValidationError(
                    f"Title cannot exceed {TITLE_MAX_LENGTH} characters", field="title"
                )
        for key in ("title", "content"):
            if key in fields and not (fields[key] or "").strip():
                raise ValidationError("Title and content cannot be empty", field=key)
        color = fields.get("color")
        if color is not None:
            color = validate_color(color)
        new_tags = normalize_tags(fields["tags"]) if fields.get("tags") is not None else None

        if "title" in fields:
            note.title = fields["title"].strip()
        if "content" in fields:
            note.content = fields["content"].strip()
        if new_tags is not None:
            note.set_tags(new_tags)
        if color is not None:
            note.color = color
        if fields.get("is_pinned") is not None:
            note.is_pinned = fields["is_pinned"]
        if fields.get("is_archived") is not None:
            note.is_archived = fields["is_archived"]
        note.updated_at = utc_now()

        await self._flush(db, "updating", note.id)
        return to_response(note)

    async def delete_note(self, db: AsyncSession, user_id: uuid.UUID, note_id: Any) -> None:
        note = await self._get_owned(db, user_id, note_id)
        await db.delete(note)
        await self._flush(db, "deleting", note.id)
        logger.info("Note %s deleted", note.id)

    async def delete_notes(self, db: AsyncSession, user_id: uuid.UUID, note_ids: Any) -> int:
        """
        Delete several of the user's notes at once.

        Ids that are malformed, unknown or foreign are skipped; the returned
        count is the number of notes actually removed.
        """
        if not isinstance(note_ids, list) or not note_ids:
            raise ValidationError("Please provide an array of note IDs", field="noteIds")

        parsed = {pid for pid in (parse_note_id(value) for value in note_ids) if pid}
        if not parsed:
            return 0

        result = await db.execute(
            select(Note).where(Note.user_id == user_id, Note.id.in_(parsed))
        )
        notes = list(result.scalars().all())
        # ORM deletes so tag rows go too even without FK cascades (SQLite)
        for note in notes:
            await db.delete(note)
        await self._flush(db, "bulk deleting", None)

        logger.info("Bulk delete removed %d of %d requested notes", len(notes), len(note_ids))
        return len(notes)

    # ══════════════════════════════════════════════════════════════════════
    # Toggles
    # ══════════════════════════════════════════════════════════════════════

    async def toggle_pin(self, db: AsyncSession, user_id: uuid.UUID, note_id: Any) -> NoteResponse:
        note = await self._get_owned(db, user_id, note_id)
        note.is_pinned = not note.is_pinned
        note.updated_at = utc_now()
        await self._flush(db, "pinning", note.id)
        return to_response(note)

    async def toggle_archive(
        self, db: AsyncSession, user_id: uuid.UUID, note_id: Any
    ) -> NoteResponse:
        note = await self._get_owned(db, user_id, note_id)
        note.is_archived = not note.is_archived
        note.updated_at = utc_now()
        await self._flush(db, "archiving", note.id)
        return to_response(note)

    # ══════════════════════════════════════════════════════════════════════
    # Stats
    # ══════════════════════════════════════════════════════════════════════

    async def get_stats(self, db: AsyncSession, user_id: uuid.UUID) -> NoteStatsData:
        """
        Counters over all of the user's notes plus the most used tags.

        pinned counts archived pinned notes too; active = not archived.
        Top tags: count desc, then tag asc, at most TOP_TAGS_LIMIT entries.
        """
        counters = select(
            func.count(Note.id),
            func.sum(case((Note.is_pinned, 1), else_=0)),
            func.sum(case((Note.is_archived, 1), else_=0)),
            func.sum(case((Note.is_archived, 0), else_=1)),
        ).where(Note.user_id == user_id)

        tag_count = func.count(NoteTag.note_id).label("count")
        top_tags = (
            select(NoteTag.tag, tag_count)
            .join(Note, Note.id == NoteTag.note_id)
            .where(Note.user_id == user_id)
            .group_by(NoteTag.tag)
            .order_by(desc(tag_count), asc(NoteTag.tag))
            .limit(TOP_TAGS_LIMIT)
        )

        try:
            total, pinned, archived, active = (await db.execute(counters)).one()
            tag_rows = (await db.execute(top_tags)).all()
        except SQLAlchemyError as e:
            logger.error("Database error computing stats: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not compute statistics. Please try again.",
                context={"error_type": type(e).__name__},
            )

        # SUM over zero rows is NULL
        return NoteStatsData(
            stats=NoteStats(
                total=total or 0,
                pinned=pinned or 0,
                archived=archived or 0,
                active=active or 0,
            ),
            top_tags=[TagCount(tag=tag, count=count) for tag, count in tag_rows],
        )

    async def _flush(self, db: AsyncSession, action: str, note_id: Optional[uuid.UUID]) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error %s note %s: %s", action, note_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
