"""
Scan Ingestion Pipeline

Turns one uploaded document (any image, or a PDF) into a transcript:

    Idle -> Previewing -> (Rasterizing, PDF only) -> Recognizing -> Done | Failed

Rules:
    - One active job per pipeline. Selecting a new file abandons the
      previous job; results that resolve afterwards are discarded.
    - At most one recognizer run at a time per pipeline.
    - Faults never escape: they become the fixed fallback transcript and
      the job still completes (Failed), ready for manual correction.
    - Progress is only republished from the recognizer's "recognizing
      text" sub-stage, as a non-decreasing percentage reset per job.

Only the first page of a PDF is transcribed.
"""

from __future__ import annotations

import asyncio
import base64
import dataclasses
import logging
import mimetypes
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Final
from uuid import UUID, uuid4

from casenote.core.exceptions import (
    IngestionFailure,
    JobStateError,
    RasterizationError,
    RecognitionError,
    UnsupportedMediaType,
)
from casenote.services.rasterizer import PdfRasterizer
from casenote.services.recognizer import (
    RECOGNIZING_STATUS,
    RecognitionEvent,
    RecognitionFailed,
    RecognitionProgress,
    Recognized,
    Recognizer,
)

logger = logging.getLogger(__name__)

FALLBACK_TRANSCRIPT: Final[str] = "Unable to extract text. Please try a clearer scan."

PDF_MEDIA_TYPE: Final[str] = "application/pdf"
GENERIC_MEDIA_TYPE: Final[str] = "application/octet-stream"

_DOCUMENT_ICON_SVG: Final[str] = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="96" height="120" '
    'viewBox="0 0 96 120"><path d="M8 4h56l24 24v88H8z" fill="#f3f4f6" '
    'stroke="#6b7280" stroke-width="4"/><path d="M64 4v24h24" fill="none" '
    'stroke="#6b7280" stroke-width="4"/><text x="48" y="80" font-size="22" '
    'font-family="sans-serif" text-anchor="middle" fill="#b91c1c">PDF</text></svg>'
)

# Generic document indicator shown instead of a rendered PDF preview
PDF_PREVIEW_DATA_URI: Final[str] = "data:image/svg+xml;base64," + base64.b64encode(
    _DOCUMENT_ICON_SVG.encode("utf-8")
).decode("ascii")


class Stage(StrEnum):
    """Pipeline state machine stages."""

    IDLE = "idle"
    PREVIEWING = "previewing"
    RASTERIZING = "rasterizing"
    RECOGNIZING = "recognizing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STAGES: Final[frozenset[Stage]] = frozenset({Stage.DONE, Stage.FAILED})


@dataclass(frozen=True)
class SourceFile:
    """An uploaded file as selected by the user."""

    file_name: str
    media_type: str
    data: bytes = field(repr=False)

    @classmethod
    def from_upload(
        cls,
        file_name: str | None,
        media_type: str | None,
        data: bytes,
    ) -> SourceFile:
        """Build a SourceFile, guessing the media type from the name if undeclared."""
        name = file_name or "upload"
        declared = (media_type or "").split(";")[0].strip().lower()
        if not declared or declared == GENERIC_MEDIA_TYPE:
            declared = mimetypes.guess_type(name)[0] or GENERIC_MEDIA_TYPE
        return cls(file_name=name, media_type=declared, data=data)

    @property
    def is_pdf(self) -> bool:
        return self.media_type == PDF_MEDIA_TYPE

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")


@dataclass
class IngestionJob:
    """
    One pipeline run for one selected file.

    Attributes:
        source: The selected file.
        stage: Current state machine stage.
        progress_percent: Recognition progress, 0-100, never decreasing.
        preview_data_uri: Immediate preview (image data URI or PDF indicator).
        result_text: Trimmed transcript on Done, fallback text on Failed;
            may be corrected manually once the job is complete.
        error_message: User-facing message on Failed.
        failure: The underlying fault on Failed (never shown to users).
        edited: True once the transcript was corrected manually.
    """

    source: SourceFile
    id: UUID = field(default_factory=uuid4)
    stage: Stage = Stage.PREVIEWING
    progress_percent: int = 0
    preview_data_uri: str | None = None
    result_text: str | None = None
    error_message: str | None = None
    failure: IngestionFailure | None = field(default=None, repr=False)
    edited: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.stage in TERMINAL_STAGES


def build_preview(source: SourceFile) -> str | None:
    """Preview for immediate feedback; None for unsupported media types."""
    if source.is_pdf:
        return PDF_PREVIEW_DATA_URI
    if source.is_image:
        encoded = base64.b64encode(source.data).decode("ascii")
        return f"data:{source.media_type};base64,{encoded}"
    return None


class IngestionPipeline:
    """
    Single-job ingestion state machine.

    The work runs in a background asyncio task; callers poll ``snapshot()``
    or await ``wait()``. Rasterizer and recognizer are injected so OCR
    back-ends can be swapped (and faked in tests).

    Usage::

        pipeline = IngestionPipeline(recognizer=TesseractRecognizer())
        pipeline.select(SourceFile("scan.pdf", "application/pdf", raw))
        job = await pipeline.wait()
        job.stage, job.result_text
    """

    def __init__(
        self,
        recognizer: Recognizer,
        rasterizer: PdfRasterizer | None = None,
    ) -> None:
        self._recognizer = recognizer
        self._rasterizer = rasterizer or PdfRasterizer()
        self._job: IngestionJob | None = None
        self._task: asyncio.Task[None] | None = None
        self._recognizer_lock = asyncio.Lock()
        # Strong refs: abandoned tasks must not be garbage-collected mid-run
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        return self._job.stage if self._job is not None else Stage.IDLE

    def snapshot(self) -> IngestionJob | None:
        """Copy of the current job, or None when idle."""
        if self._job is None:
            return None
        return dataclasses.replace(self._job)

    def select(self, source: SourceFile) -> IngestionJob:
        """
        Start a job for ``source``, abandoning any job in flight.

        The preview is built synchronously; rasterization and recognition
        continue in the background. Unsupported media types fail here and
        never reach the recognizer.
        """
        job, _ = self._start(source)
        return dataclasses.replace(job)

    async def wait(self) -> IngestionJob | None:
        """
        Wait for the current job's task and return a copy of that job.

        The job is captured on entry. If it is superseded or reset while
        waiting, it is returned as it was abandoned (not complete).
        """
        if self._job is None:
            return None
        return await self._settle(self._job, self._task)

    async def run(self, source: SourceFile) -> IngestionJob:
        """Select ``source`` and wait for that job's result."""
        job, task = self._start(source)
        return await self._settle(job, task)

    def correct_transcript(self, text: str) -> IngestionJob:
        """
        Replace the transcript before saving.

        Raises:
            JobStateError: If no job exists or it is still running.
        """
        job = self._job
        if job is None or not job.is_complete:
            raise JobStateError("Transcript can only be edited once extraction is complete")
        job.result_text = text
        job.edited = True
        return dataclasses.replace(job)

    def reset(self) -> None:
        """Return to Idle, abandoning the current job (e.g. after saving)."""
        if self._job is not None:
            logger.info("Job %s reset (stage=%s)", self._job.id, self._job.stage)
        self._job = None
        self._task = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _start(
        self, source: SourceFile
    ) -> tuple[IngestionJob, asyncio.Task[None] | None]:
        previous = self._job
        if previous is not None and not previous.is_complete:
            logger.info("Job %s superseded while %s", previous.id, previous.stage)

        job = IngestionJob(source=source)
        self._job = job
        self._task = None
        job.preview_data_uri = build_preview(source)
        logger.info(
            "Job %s: previewing '%s' (%s, %d bytes)",
            job.id,
            source.file_name,
            source.media_type,
            len(source.data),
        )

        if not (source.is_pdf or source.is_image):
            self._finish(
                job,
                RecognitionFailed(
                    UnsupportedMediaType(f"Unsupported media type: {source.media_type}")
                ),
            )
            return job, None

        task = asyncio.create_task(self._run(job), name=f"ingest-{job.id}")
        self._task = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return job, task

    async def _settle(
        self,
        job: IngestionJob,
        task: asyncio.Task[None] | None,
    ) -> IngestionJob:
        if task is not None:
            await asyncio.shield(task)
        return dataclasses.replace(job)

    def _is_current(self, job: IngestionJob) -> bool:
        return self._job is job

    def _transition(self, job: IngestionJob, stage: Stage) -> None:
        if not self._is_current(job):
            return
        logger.debug("Job %s: %s -> %s", job.id, job.stage, stage)
        job.stage = stage

    def _publish_progress(self, job: IngestionJob, progress: float) -> None:
        if not self._is_current(job):
            return
        percent = min(100, max(0, round(progress * 100)))
        job.progress_percent = max(job.progress_percent, percent)

    def _finish(self, job: IngestionJob, outcome: Recognized | RecognitionFailed) -> None:
        if not self._is_current(job):
            logger.info("Job %s: discarding stale result", job.id)
            return

        job.finished_at = datetime.now(UTC)
        # Raw bytes are not needed past this point; the preview stays
        job.source = dataclasses.replace(job.source, data=b"")
        if isinstance(outcome, Recognized):
            job.stage = Stage.DONE
            job.progress_percent = 100
            job.result_text = outcome.text.strip()
            logger.info("Job %s: done (%d chars)", job.id, len(job.result_text))
        else:
            job.stage = Stage.FAILED
            job.failure = outcome.error
            job.result_text = FALLBACK_TRANSCRIPT
            job.error_message = FALLBACK_TRANSCRIPT
            logger.warning(
                "Job %s: failed (%s: %s)",
                job.id,
                type(outcome.error).__name__,
                outcome.error,
            )

    async def _run(self, job: IngestionJob) -> None:
        try:
            outcome = await self._extract(job)
        except Exception as e:
            # Anything unexpected still ends the job with the fallback text
            logger.exception("Job %s: unexpected ingestion error", job.id)
            outcome = RecognitionFailed(IngestionFailure(str(e)))

        if outcome is not None:
            self._finish(job, outcome)

    async def _extract(self, job: IngestionJob) -> Recognized | RecognitionFailed | None:
        """Rasterize (PDF) and recognize. Returns None if the job was abandoned."""
        image = job.source.data

        if job.source.is_pdf:
            self._transition(job, Stage.RASTERIZING)
            try:
                raster = await self._rasterizer.rasterize(image)
            except RasterizationError as e:
                return RecognitionFailed(e)
            image = raster.data

        async with self._recognizer_lock:
            if not self._is_current(job):
                return None
            self._transition(job, Stage.RECOGNIZING)
            return await self._consume(job, self._recognizer.recognize(image))

    async def _consume(
        self,
        job: IngestionJob,
        events: AsyncIterator[RecognitionEvent],
    ) -> Recognized | RecognitionFailed | None:
        try:
            async for event in events:
                if not self._is_current(job):
                    return None
                if isinstance(event, RecognitionProgress):
                    if event.status == RECOGNIZING_STATUS:
                        self._publish_progress(job, event.progress)
                elif isinstance(event, Recognized | RecognitionFailed):
                    return event
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
        return RecognitionFailed(RecognitionError("Recognizer ended without a result"))


class IngestionRegistry:
    """
    One pipeline per owner, created on first use.

    Lets the HTTP layer expose the pipeline as a polled status object.
    State is process-local: run the API with a single worker.
    """

    def __init__(self, pipeline_factory: Callable[[], IngestionPipeline]) -> None:
        self._factory = pipeline_factory
        self._pipelines: dict[str, IngestionPipeline] = {}

    def get(self, owner_id: str) -> IngestionPipeline:
        pipeline = self._pipelines.get(owner_id)
        if pipeline is None:
            pipeline = self._factory()
            self._pipelines[owner_id] = pipeline
        return pipeline

    def peek(self, owner_id: str) -> IngestionPipeline | None:
        return self._pipelines.get(owner_id)

    def discard(self, owner_id: str) -> None:
        """Reset and forget the pipeline of ``owner_id``, if any."""
        pipeline = self._pipelines.pop(owner_id, None)
        if pipeline is not None:
            pipeline.reset()
