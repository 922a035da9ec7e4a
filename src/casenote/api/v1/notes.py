"""
Notes API Router

Ownership-scoped CRUD for case notes. Every endpoint requires a bearer
token; the owner id it carries scopes all reads and writes.

Endpoints:
    GET    /notes  — List the caller's notes, newest first.
    POST   /notes  — Create a manual or scan note.
    PATCH  /notes  — Update title and the origin's content field.
    DELETE /notes  — Delete a note (and release its attachment).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from casenote.core.database import get_db
from casenote.core.exceptions import ValidationError
from casenote.core.security import get_current_owner
from casenote.models.schemas import NotePatch
from casenote.schemas.notes import (
    NoteCreate,
    NoteCreatedResponse,
    NoteDelete,
    NoteListResponse,
    NoteUpdate,
    SuccessResponse,
)
from casenote.services.notes import NoteStore
from casenote.services.uploads import UploadAdapter, get_upload_adapter

router = APIRouter()


def get_note_store(
    uploads: UploadAdapter = Depends(get_upload_adapter),
) -> NoteStore:
    """FastAPI dependency — returns a NoteStore wired to the upload adapter."""
    return NoteStore(uploads=uploads)


@router.get("", response_model=NoteListResponse)
async def list_notes(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    store: NoteStore = Depends(get_note_store),
) -> NoteListResponse:
    """List all notes of the caller, ordered by creation time (newest first)."""
    notes = await store.list_notes(db, owner_id)
    return NoteListResponse(notes=notes)


@router.post("", response_model=NoteCreatedResponse)
async def create_note(
    note: NoteCreate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    store: NoteStore = Depends(get_note_store),
) -> NoteCreatedResponse:
    """
    Create a note.

    Manual notes keep ``richContent``; scan notes keep ``transcript`` and
    ``attachment``. Fields that do not match ``origin`` are dropped.
    """
    note_id = await store.create(db, owner_id, note)
    return NoteCreatedResponse(id=str(note_id))


@router.patch("", response_model=SuccessResponse)
async def update_note(
    body: NoteUpdate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    store: NoteStore = Depends(get_note_store),
) -> SuccessResponse:
    """
    Update a note's title and content.

    A transcript sent for a manual note (or rich content for a scan note)
    is ignored. Unknown ids and other owners' ids both return 404.
    """
    if not body.id:
        raise ValidationError("id is required", field="id")
    if not body.title:
        raise ValidationError("title is required", field="title")

    patch = NotePatch(
        title=body.title,
        rich_content=body.rich_content,
        transcript=body.transcript,
    )
    await store.update(db, owner_id, body.id, patch)
    return SuccessResponse()


@router.delete("", response_model=SuccessResponse)
async def delete_note(
    body: NoteDelete,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    store: NoteStore = Depends(get_note_store),
) -> SuccessResponse:
    """Delete a note. Unknown ids and other owners' ids both return 404."""
    if not body.id:
        raise ValidationError("Missing note ID", field="id")

    await store.delete(db, owner_id, body.id)
    return SuccessResponse()
