"""
Uploads API Router

Stores the original document behind a scan note. Upload is a separate
step from OCR: a failed upload returns 502 and the client decides whether
to retry or save the note transcript-only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from casenote.core.config import settings
from casenote.core.exceptions import ValidationError
from casenote.core.security import get_current_owner
from casenote.schemas.uploads import UploadResponse
from casenote.services.uploads import UploadAdapter, get_upload_adapter

router = APIRouter()


@router.post(
    "",
    response_model=UploadResponse,
    summary="Upload a source document",
    responses={
        400: {"description": "No file, or empty/oversized file"},
        502: {"description": "Storage backend failure"},
    },
)
async def upload_file(
    file: UploadFile | None = File(default=None),
    owner_id: str = Depends(get_current_owner),
    uploads: UploadAdapter = Depends(get_upload_adapter),
) -> UploadResponse:
    if file is None:
        raise ValidationError("No file provided", field="file")

    raw = await file.read()
    if not raw:
        raise ValidationError("File is empty", field="file")
    if len(raw) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes", field="file"
        )

    stored = await uploads.save(
        raw,
        file.filename or "upload",
        file.content_type or "",
        owner_id,
    )
    return UploadResponse(url=stored.url, storage_id=stored.storage_id)
