"""
Ingestion API Router

Exposes the caller's ingestion pipeline as a polled status object.
Selecting a file starts a background job and returns immediately; the
client polls until ``isComplete`` and then saves the transcript through
POST /notes.

Endpoints:
    POST   /ingest  — Select a file (supersedes any job in flight), 202.
    GET    /ingest  — Current job status.
    PATCH  /ingest  — Correct the transcript of a completed job.
    DELETE /ingest  — Reset to idle (after saving).
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, UploadFile, status

from casenote.core.config import settings
from casenote.core.exceptions import ValidationError
from casenote.core.security import get_current_owner
from casenote.schemas.ingestion import IngestionStatus, TranscriptCorrection
from casenote.services.ingestion import (
    IngestionPipeline,
    IngestionRegistry,
    SourceFile,
)
from casenote.services.rasterizer import PdfRasterizer
from casenote.services.recognizer import build_recognizer

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_ingestion_registry() -> IngestionRegistry:
    """FastAPI dependency — process-wide registry of per-owner pipelines."""
    recognizer = build_recognizer()
    rasterizer = PdfRasterizer()
    return IngestionRegistry(
        lambda: IngestionPipeline(recognizer=recognizer, rasterizer=rasterizer)
    )


@router.post(
    "",
    response_model=IngestionStatus,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Select a file for transcription",
)
async def select_file(
    file: UploadFile,
    owner_id: str = Depends(get_current_owner),
    registry: IngestionRegistry = Depends(get_ingestion_registry),
) -> IngestionStatus:
    """
    Start transcribing an image or PDF (first page only).

    Returns the preview right away; rasterization and OCR continue in the
    background. Unsupported files come back already ``failed``.
    """
    raw = await file.read()
    if len(raw) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes", field="file"
        )

    source = SourceFile.from_upload(file.filename, file.content_type, raw)
    job = registry.get(owner_id).select(source)
    return IngestionStatus.from_job(job)


@router.get("", response_model=IngestionStatus, summary="Current job status")
async def get_status(
    owner_id: str = Depends(get_current_owner),
    registry: IngestionRegistry = Depends(get_ingestion_registry),
) -> IngestionStatus:
    pipeline = registry.peek(owner_id)
    return IngestionStatus.from_job(pipeline.snapshot() if pipeline else None)


@router.patch("", response_model=IngestionStatus, summary="Correct the transcript")
async def correct_transcript(
    body: TranscriptCorrection,
    owner_id: str = Depends(get_current_owner),
    registry: IngestionRegistry = Depends(get_ingestion_registry),
) -> IngestionStatus:
    """Edit the transcript once the job is done or failed (409 while running)."""
    job = registry.get(owner_id).correct_transcript(body.transcript)
    return IngestionStatus.from_job(job)


@router.delete("", response_model=IngestionStatus, summary="Reset to idle")
async def reset(
    owner_id: str = Depends(get_current_owner),
    registry: IngestionRegistry = Depends(get_ingestion_registry),
) -> IngestionStatus:
    registry.discard(owner_id)
    return IngestionStatus()
