"""
Note Domain Schemas

Pydantic models for notes as the rest of the application sees them.
A note is a tagged variant on ``origin``:

    Note = ManualNote(rich_content) | ScanNote(transcript, attachment)

Both variants share id, owner, title and timestamps. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from casenote.models.note import NoteRecord, Origin


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Attachment(CamelModel):
    """Reference to the uploaded source document of a scan note."""

    url: str = Field(min_length=1, description="Retrievable URL of the stored file")
    storage_id: str = Field(min_length=1, description="Upload adapter identifier")
    file_name: str = Field(default="", description="Original file name")
    mime_type: str = Field(default="", description="Declared media type")


class NoteCommon(CamelModel):
    """Fields shared by every note variant."""

    id: UUID
    owner_id: str
    title: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ManualNote(NoteCommon):
    """Typed note; ``rich_content`` is opaque rich-text markup."""

    origin: Literal["manual"] = "manual"
    rich_content: str = ""


class ScanNote(NoteCommon):
    """Scanned note; ``transcript`` holds OCR output or its correction."""

    origin: Literal["scan"] = "scan"
    transcript: str = ""
    attachment: Attachment | None = None


Note = Annotated[ManualNote | ScanNote, Field(discriminator="origin")]

_note_adapter: TypeAdapter[ManualNote | ScanNote] = TypeAdapter(Note)


class NoteDraft(CamelModel):
    """
    Input for ``NoteStore.create``.

    ``title`` and ``origin`` are optional here so that a missing value
    reaches the store and surfaces as a field-level ValidationError.
    Fields that do not apply to ``origin`` are ignored on write.
    """

    title: str | None = None
    origin: Origin | None = None
    rich_content: str | None = None
    transcript: str | None = None
    attachment: Attachment | None = None


class NotePatch(CamelModel):
    """
    Input for ``NoteStore.update``.

    ``None`` means "leave unchanged". Only the content field matching the
    stored note's origin is applied; the other one is dropped silently.
    """

    title: str | None = None
    rich_content: str | None = None
    transcript: str | None = None


def note_from_record(record: NoteRecord) -> ManualNote | ScanNote:
    """Convert a NoteRecord into its tagged domain variant."""
    common = {
        "id": record.id,
        "owner_id": record.owner_id,
        "title": record.title,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }

    if record.origin == Origin.MANUAL:
        return ManualNote(**common, rich_content=record.rich_content or "")

    attachment = None
    if record.attachment_url and record.attachment_storage_id:
        attachment = Attachment(
            url=record.attachment_url,
            storage_id=record.attachment_storage_id,
            file_name=record.attachment_file_name or "",
            mime_type=record.attachment_mime_type or "",
        )
    return ScanNote(
        **common,
        transcript=record.transcript or "",
        attachment=attachment,
    )


def parse_note(data: dict) -> ManualNote | ScanNote:
    """Validate a serialized note (either key spelling) into its variant."""
    return _note_adapter.validate_python(data)
