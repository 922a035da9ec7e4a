"""
Note Store

Business rules for ownership-scoped notes on top of NoteRepository:

    - Every operation requires the caller's owner id; records of other
      owners are invisible and immutable.
    - update/delete on a missing note and on someone else's note fail the
      same way (NotFoundOrForbidden).
    - The origin decides which content field is live. Writes to the other
      field are dropped, never stored.
    - Attachments must have been stored under the caller's upload folder.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from casenote.core.exceptions import (
    AuthError,
    NotFoundOrForbidden,
    UploadFailure,
    ValidationError,
)
from casenote.models.note import NoteRecord, Origin
from casenote.models.schemas import (
    ManualNote,
    NoteDraft,
    NotePatch,
    ScanNote,
    note_from_record,
)
from casenote.repositories.notes import NoteRepository, note_repository
from casenote.services.uploads import UploadAdapter, owner_folder

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200


def _require_owner(owner_id: str | None) -> str:
    if not owner_id:
        raise AuthError("Unauthorized")
    return owner_id


def _parse_note_id(note_id: uuid.UUID | str) -> uuid.UUID:
    """Malformed ids are reported exactly like unknown ones."""
    if isinstance(note_id, uuid.UUID):
        return note_id
    try:
        return uuid.UUID(str(note_id))
    except ValueError as e:
        raise NotFoundOrForbidden() from e


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("title is required", field="title")
    if len(cleaned) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"title must be at most {TITLE_MAX_LENGTH} characters", field="title"
        )
    return cleaned


def _owns_storage(owner_id: str, storage_id: str) -> bool:
    """Stored files live under the owner's folder; anything else is foreign."""
    return storage_id.startswith(f"{owner_folder(owner_id)}/")


class NoteStore:
    """
    Ownership-scoped note operations.

    All methods take an externally managed ``AsyncSession``. The upload
    adapter is optional; without it, deleting a scan note leaves the stored
    file in place.

    Usage::

        store = NoteStore(uploads=get_upload_adapter())
        note_id = await store.create(session, owner, NoteDraft(title="Visit 1",
                                                              origin="manual"))
        notes = await store.list_notes(session, owner)
    """

    def __init__(
        self,
        repository: NoteRepository | None = None,
        uploads: UploadAdapter | None = None,
    ) -> None:
        self._repository = repository or note_repository
        self._uploads = uploads

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_notes(
        self,
        session: AsyncSession,
        owner_id: str,
    ) -> list[ManualNote | ScanNote]:
        """All notes of ``owner_id``, newest first."""
        owner_id = _require_owner(owner_id)
        records = await self._repository.list_for_owner(session, owner_id)
        return [note_from_record(r) for r in records]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        owner_id: str,
        draft: NoteDraft,
    ) -> uuid.UUID:
        """
        Insert a note for ``owner_id`` and return its id.

        Raises:
            ValidationError: If title or origin is missing, or the
                attachment was not stored for ``owner_id``.
        """
        owner_id = _require_owner(owner_id)
        title = _clean_title(draft.title)
        if draft.origin is None:
            raise ValidationError("origin is required", field="origin")

        values: dict[str, Any] = {"title": title, "origin": draft.origin.value}
        if draft.origin == Origin.MANUAL:
            values["rich_content"] = draft.rich_content or ""
        else:
            values["transcript"] = draft.transcript or ""
            if draft.attachment is not None:
                if not _owns_storage(owner_id, draft.attachment.storage_id):
                    raise ValidationError(
                        "attachment does not belong to the caller", field="attachment"
                    )
                values.update(
                    attachment_url=draft.attachment.url,
                    attachment_storage_id=draft.attachment.storage_id,
                    attachment_file_name=draft.attachment.file_name,
                    attachment_mime_type=draft.attachment.mime_type,
                )

        record = await self._repository.create_for_owner(session, owner_id, values)
        logger.info("Created %s note %s", record.origin, record.id)
        return record.id

    async def update(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: uuid.UUID | str,
        patch: NotePatch,
    ) -> None:
        """
        Apply ``patch`` to a note owned by ``owner_id``.

        Title is always updatable. Manual notes accept only rich_content,
        scan notes only transcript; the inapplicable field is ignored.

        Raises:
            NotFoundOrForbidden: If the note is missing or not owned.
            ValidationError: If a supplied title is blank.
        """
        owner_id = _require_owner(owner_id)
        record = await self._get_owned_or_raise(session, owner_id, note_id)

        values: dict[str, Any] = {}
        if patch.title is not None:
            values["title"] = _clean_title(patch.title)

        if record.origin == Origin.MANUAL:
            if patch.rich_content is not None:
                values["rich_content"] = patch.rich_content
            if patch.transcript is not None:
                logger.debug("Ignoring transcript on manual note %s", record.id)
        else:
            if patch.transcript is not None:
                values["transcript"] = patch.transcript
            if patch.rich_content is not None:
                logger.debug("Ignoring rich content on scan note %s", record.id)

        await self._repository.update_fields(session, record, values)
        logger.info("Updated note %s (%s)", record.id, ", ".join(values) or "no fields")

    async def delete(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: uuid.UUID | str,
    ) -> None:
        """
        Delete a note owned by ``owner_id``.

        The stored attachment is released on a best-effort basis: storage
        errors are logged and never fail the delete. Files outside the
        owner's folder, or still referenced by another note, are kept.

        Raises:
            NotFoundOrForbidden: If the note is missing or not owned.
        """
        owner_id = _require_owner(owner_id)
        record = await self._get_owned_or_raise(session, owner_id, note_id)
        storage_id = record.attachment_storage_id

        await self._repository.delete_record(session, record)
        logger.info("Deleted note %s", record.id)

        if storage_id:
            await self._release_attachment(session, owner_id, storage_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get_owned_or_raise(
        self,
        session: AsyncSession,
        owner_id: str,
        note_id: uuid.UUID | str,
    ) -> NoteRecord:
        record = await self._repository.get_owned(
            session, owner_id, _parse_note_id(note_id)
        )
        if record is None:
            raise NotFoundOrForbidden()
        return record

    async def _release_attachment(
        self,
        session: AsyncSession,
        owner_id: str,
        storage_id: str,
    ) -> None:
        if self._uploads is None:
            return
        if not _owns_storage(owner_id, storage_id):
            logger.warning("Keeping attachment %s: not stored for this owner", storage_id)
            return
        if await self._repository.attachment_in_use(session, owner_id, storage_id):
            logger.info("Keeping attachment %s: still referenced", storage_id)
            return
        try:
            await self._uploads.delete(storage_id)
        except UploadFailure as e:
            logger.warning("Could not release attachment %s: %s", storage_id, e)
