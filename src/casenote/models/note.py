"""
Note Model

Persistent storage for clinician case notes. A note is either typed
(origin ``manual``, content in ``rich_content``) or scanned (origin
``scan``, OCR text in ``transcript`` plus an optional attachment).
"""

from __future__ import annotations

import uuid
from enum import StrEnum

from sqlalchemy import CheckConstraint, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from casenote.models.base import Base, TimestampMixin


class Origin(StrEnum):
    """How a note was captured. Immutable once the note exists."""

    MANUAL = "manual"
    SCAN = "scan"


class NoteRecord(Base, TimestampMixin):
    """
    Note entity scoped to a single owner.

    Attributes:
        id: UUID primary key (generated Python-side).
        owner_id: Authenticated owner identifier; every query filters on it.
        title: Non-empty label (max 200 chars).
        origin: ``manual`` or ``scan``.
        rich_content: Serialized rich-text markup (manual notes only).
        transcript: OCR or corrected text (scan notes only).
        attachment_*: Uploaded source file reference (scan notes only).

    The CHECK constraint keeps the inactive content field empty so the
    origin invariant also holds for writes that bypass the repository.
    """

    __tablename__ = "notes"
    __table_args__ = (
        CheckConstraint("origin IN ('manual', 'scan')", name="ck_notes_origin"),
        CheckConstraint(
            "(origin = 'manual' AND transcript IS NULL AND attachment_url IS NULL)"
            " OR (origin = 'scan' AND rich_content IS NULL)",
            name="ck_notes_origin_fields",
        ),
        Index("ix_notes_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(320), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    origin: Mapped[str] = mapped_column(String(16), nullable=False)

    rich_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)

    attachment_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    attachment_storage_id: Mapped[str | None] = mapped_column(
        String(512), nullable=True
    )
    attachment_file_name: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    attachment_mime_type: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<NoteRecord(id={self.id!s:.8}, origin={self.origin}, "
            f"title='{self.title[:20]}')>"
        )
