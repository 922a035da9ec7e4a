"""
Note Repository

Data access layer for NoteRecord entities. Every query is scoped to an
owner: there is deliberately no method that reads or writes a note by id
alone.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from casenote.models.base import utcnow
from casenote.models.note import NoteRecord
from casenote.repositories.base import BaseRepository


class NoteRepository(BaseRepository[NoteRecord]):
    """
    Owner-scoped persistence for notes.

    Inherits the generic primitives from BaseRepository and adds:
        - list_for_owner: newest first, no pagination
        - get_owned: id AND owner must both match
        - update_fields: stamps updated_at on every write
        - attachment_in_use: whether a stored file is still referenced
    """

    def __init__(self) -> None:
        super().__init__(NoteRecord)

    async def create_for_owner(
        self,
        session: AsyncSession,
        owner_id: str,
        values: dict[str, Any],
    ) -> NoteRecord:
        """Insert a note owned by ``owner_id``."""
        return await self.add(session, {**values, "owner_id": owner_id})

    async def list_for_owner(
        self,
        session: AsyncSession,
        owner_id: str,
    ) -> Sequence[NoteRecord]:
        """All notes of ``owner_id``, ordered by created_at descending."""
        return await self.find_all(
            session,
            NoteRecord.owner_id == owner_id,
            order_by=(NoteRecord.created_at.desc(), NoteRecord.id),
        )

    async def get_owned(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: uuid.UUID,
    ) -> NoteRecord | None:
        """Fetch a note only if it exists AND belongs to ``owner_id``."""
        return await self.find_one(
            session,
            NoteRecord.id == note_id,
            NoteRecord.owner_id == owner_id,
        )

    async def update_fields(
        self,
        session: AsyncSession,
        record: NoteRecord,
        values: dict[str, Any],
    ) -> NoteRecord:
        """Apply ``values`` and set updated_at."""
        return await self.apply(session, record, {**values, "updated_at": utcnow()})

    async def delete_record(self, session: AsyncSession, record: NoteRecord) -> None:
        """Remove a previously fetched note."""
        await self.remove(session, record)

    async def attachment_in_use(
        self,
        session: AsyncSession,
        owner_id: str,
        storage_id: str,
    ) -> bool:
        """True while any note of ``owner_id`` still points at ``storage_id``."""
        record = await self.find_one(
            session,
            NoteRecord.owner_id == owner_id,
            NoteRecord.attachment_storage_id == storage_id,
        )
        return record is not None


# Module-level instance for convenience imports
note_repository = NoteRepository()
