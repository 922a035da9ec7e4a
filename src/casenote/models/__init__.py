"""Models package - re-exports ORM and domain models for convenient imports."""

from casenote.models.base import Base, TimestampMixin
from casenote.models.note import NoteRecord, Origin
from casenote.models.schemas import (
    Attachment,
    ManualNote,
    Note,
    NoteDraft,
    NotePatch,
    ScanNote,
    note_from_record,
)

__all__ = [
    # SQLAlchemy ORM (persistence layer)
    "Base",
    "TimestampMixin",
    "NoteRecord",
    "Origin",
    # Pydantic domain models
    "Attachment",
    "ManualNote",
    "ScanNote",
    "Note",
    "NoteDraft",
    "NotePatch",
    "note_from_record",
]
