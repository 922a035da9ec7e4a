"""
Note Schemas

Pydantic models for the /notes request/response bodies (camelCase on the
wire). Required-field checks live in the note store so that a missing
title/origin/id is reported as a field-level 400, not a schema error.
"""

from __future__ import annotations

from pydantic import Field

from casenote.models.schemas import CamelModel, Note, NoteDraft


class NoteCreate(NoteDraft):
    """Request body for POST /notes."""

    pass


class NoteUpdate(CamelModel):
    """Request body for PATCH /notes. ``title`` and ``id`` are required."""

    id: str | None = None
    title: str | None = None
    rich_content: str | None = None
    transcript: str | None = None


class NoteDelete(CamelModel):
    """Request body for DELETE /notes."""

    id: str | None = None


class NoteListResponse(CamelModel):
    """Response for GET /notes."""

    notes: list[Note] = Field(default_factory=list)


class NoteCreatedResponse(CamelModel):
    """Response for POST /notes."""

    id: str


class SuccessResponse(CamelModel):
    """Acknowledgement for PATCH/DELETE."""

    success: bool = True
