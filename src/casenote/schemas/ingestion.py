"""
Ingestion Schemas

Polled status object for the per-owner ingestion pipeline.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import Field

from casenote.models.schemas import CamelModel
from casenote.services.ingestion import IngestionJob, Stage


class IngestionStatus(CamelModel):
    """Snapshot of the current ingestion job (``stage="idle"`` when none)."""

    job_id: UUID | None = None
    stage: Stage = Stage.IDLE
    progress_percent: int = Field(default=0, ge=0, le=100)
    file_name: str | None = None
    media_type: str | None = None
    preview_data_uri: str | None = None
    transcript: str | None = Field(
        default=None,
        description="Recognized text on done, fallback text on failed",
    )
    error_message: str | None = None
    edited: bool = False
    is_complete: bool = False

    @classmethod
    def from_job(cls, job: IngestionJob | None) -> IngestionStatus:
        if job is None:
            return cls()
        return cls(
            job_id=job.id,
            stage=job.stage,
            progress_percent=job.progress_percent,
            file_name=job.source.file_name,
            media_type=job.source.media_type,
            preview_data_uri=job.preview_data_uri,
            transcript=job.result_text,
            error_message=job.error_message,
            edited=job.edited,
            is_complete=job.is_complete,
        )


class TranscriptCorrection(CamelModel):
    """Request body for PATCH /ingest."""

    transcript: str
