"""
Think Nest Backend — Notes Route Handlers
==========================================

What:  /api/notes endpoints for the signed-in user's notes.
How:   Extracts query/body/path input, delegates to NoteService, wraps the
       result in the response envelope.

Route order matters: /stats is declared before /{note_id} so it is not
captured as a note id.

Caching:
    Responses are per-user and change on every edit, so everything is sent
    with Cache-Control: private, no-store.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from thinknest.database import get_db_session
from thinknest.dependencies import get_current_user
from thinknest.models.user import User
from thinknest.schemas.common import ApiResponse, ErrorResponse
from thinknest.schemas.note import (
    BulkDeleteData,
    BulkDeleteRequest,
    NoteCreateRequest,
    NoteData,
    NoteListData,
    NoteStatsData,
    NoteUpdateRequest,
)
from thinknest.services.note_service import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    note_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

NO_STORE = "private, no-store"

NOTE_RESPONSES = {
    401: {"description": "Not authenticated", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=ApiResponse[NoteListData],
    responses={401: NOTE_RESPONSES[401]},
    summary="List notes with search, filters and pagination",
)
async def list_notes(
    response: Response,
    search: Optional[str] = Query(
        default=None, description="Case-insensitive substring of title or content"
    ),
    tags: Optional[str] = Query(
        default=None, description="Comma-separated tags; notes having any of them match"
    ),
    is_pinned: Optional[bool] = Query(default=None, alias="isPinned"),
    is_archived: Optional[bool] = Query(
        default=None,
        alias="isArchived",
        description="Archived notes are hidden unless isArchived=true",
    ),
    sort_by: str = Query(
        default="createdAt", alias="sortBy", description="createdAt, updatedAt or title"
    ),
    sort_order: str = Query(default="desc", alias="sortOrder", description="asc or desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteListData]:
    """
    Example client usage:
        GET /api/notes?search=meeting&tags=work,urgent&page=2&limit=20
        GET /api/notes?isArchived=true&sortBy=updatedAt

    X-Total-Count mirrors pagination.totalNotes for table UIs.
    """
    result = await note_service.list_notes(
        db=db,
        user_id=user.id,
        search=search,
        tags=tags,
        is_pinned=is_pinned,
        is_archived=is_archived,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    response.headers["X-Total-Count"] = str(result.pagination.total_notes)
    response.headers["Cache-Control"] = NO_STORE
    return ApiResponse(message="Notes retrieved successfully", data=result)


@router.get(
    "/stats",
    response_model=ApiResponse[NoteStatsData],
    responses={401: NOTE_RESPONSES[401]},
    summary="Note counters and most used tags",
)
async def get_stats(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteStatsData]:
    result = await note_service.get_stats(db=db, user_id=user.id)
    response.headers["Cache-Control"] = NO_STORE
    return ApiResponse(message="Statistics retrieved successfully", data=result)


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[NoteData],
    responses={
        400: {"description": "Invalid note", "model": ErrorResponse},
        401: NOTE_RESPONSES[401],
    },
    summary="Create a note",
)
async def create_note(
    body: NoteCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteData]:
    note = await note_service.create_note(
        db=db,
        user_id=user.id,
        title=body.title,
        content=body.content,
        tags=body.tags,
        color=body.color,
        is_pinned=body.is_pinned,
    )
    return ApiResponse(message="Note created successfully", data=NoteData(note=note))


@router.delete(
    "",
    response_model=ApiResponse[BulkDeleteData],
    responses={
        400: {"description": "noteIds missing or not a list", "model": ErrorResponse},
        401: NOTE_RESPONSES[401],
    },
    summary="Delete several notes",
)
async def delete_notes(
    body: Optional[BulkDeleteRequest] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[BulkDeleteData]:
    deleted = await note_service.delete_notes(
        db=db, user_id=user.id, note_ids=body.note_ids if body else None
    )
    return ApiResponse(
        message=f"{deleted} note(s) deleted successfully",
        data=BulkDeleteData(deleted_count=deleted),
    )


@router.get(
    "/{note_id}",
    response_model=ApiResponse[NoteData],
    responses=NOTE_RESPONSES,
    summary="Get a single note",
)
async def get_note(
    note_id: str,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteData]:
    """note_id is taken as a plain string: a malformed id is a 404, not a 422."""
    note = await note_service.get_note(db=db, user_id=user.id, note_id=note_id)
    response.headers["Cache-Control"] = NO_STORE
    return ApiResponse(message="Note retrieved successfully", data=NoteData(note=note))


@router.put(
    "/{note_id}",
    response_model=ApiResponse[NoteData],
    responses={400: {"description": "Invalid note", "model": ErrorResponse}, **NOTE_RESPONSES},
    summary="Update a note",
)
async def update_note(
    note_id: str,
    body: NoteUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteData]:
    note = await note_service.update_note(
        db=db,
        user_id=user.id,
        note_id=note_id,
        fields=body.model_dump(exclude_unset=True),
    )
    return ApiResponse(message="Note updated successfully", data=NoteData(note=note))


@router.delete(
    "/{note_id}",
    response_model=ApiResponse[None],
    responses=NOTE_RESPONSES,
    summary="Delete a note",
)
async def delete_note(
    note_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await note_service.delete_note(db=db, user_id=user.id, note_id=note_id)
    return ApiResponse(message="Note deleted successfully")


@router.patch(
    "/{note_id}/pin",
    response_model=ApiResponse[NoteData],
    responses=NOTE_RESPONSES,
    summary="Toggle the pinned flag",
)
async def toggle_pin(
    note_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteData]:
    note = await note_service.toggle_pin(db=db, user_id=user.id, note_id=note_id)
    state = "pinned" if note.is_pinned else "unpinned"
    return ApiResponse(message=f"Note {state} successfully", data=NoteData(note=note))


@router.patch(
    "/{note_id}/archive",
    response_model=ApiResponse[NoteData],
    responses=NOTE_RESPONSES,
    summary="Toggle the archived flag",
)
async def toggle_archive(
    note_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[NoteData]:
    note = await note_service.toggle_archive(db=db, user_id=user.id, note_id=note_id)
    state = "archived" if note.is_archived else "unarchived"
    return ApiResponse(message=f"Note {state} successfully", data=NoteData(note=note))
