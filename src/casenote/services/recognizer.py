"""
Recognizer

Optical character recognition behind a narrow streaming interface so OCR
back-ends stay swappable:

    recognize(image) -> async stream of RecognitionProgress,
                        ending in exactly one Recognized | RecognitionFailed

Failures are returned as values, never raised, so callers can tell
"recognized empty text" apart from "recognition failed". Building the
user-facing fallback text is the caller's job.

Back-ends:
    - TesseractRecognizer: pytesseract + Pillow (production)
    - MockRecognizer: deterministic text, no binary required (dev/test)
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Final, Protocol

import pytesseract
from PIL import Image, ImageOps

from casenote.core.config import settings
from casenote.core.exceptions import IngestionFailure, RecognitionError

logger = logging.getLogger(__name__)

# Sub-stage names reported in RecognitionProgress.status
LOADING_STATUS: Final[str] = "loading image"
INITIALIZING_STATUS: Final[str] = "initializing api"
RECOGNIZING_STATUS: Final[str] = "recognizing text"


@dataclass(frozen=True)
class RecognitionProgress:
    """Intermediate progress of one sub-stage, ``progress`` in [0, 1]."""

    status: str
    progress: float


@dataclass(frozen=True)
class Recognized:
    """Successful terminal event. ``text`` is the raw, untrimmed OCR output."""

    text: str


@dataclass(frozen=True)
class RecognitionFailed:
    """Failed terminal event."""

    error: IngestionFailure


RecognitionEvent = RecognitionProgress | Recognized | RecognitionFailed


class Recognizer(Protocol):
    """OCR back-end contract."""

    def recognize(self, image: bytes) -> AsyncIterator[RecognitionEvent]:
        """Stream progress for ``image`` and finish with a terminal event."""
        ...


class TesseractRecognizer:
    """
    Tesseract OCR via pytesseract.

    Image decoding and the tesseract subprocess are blocking and run in a
    worker thread via ``asyncio.to_thread``. Tesseract exposes no progress
    of its own, so the "recognizing text" sub-stage reports 0 when the
    engine starts and 1 when it returns.

    Args:
        language: Tesseract language code(s), e.g. ``"eng"`` or ``"eng+fra"``.
        tesseract_cmd: Path to the tesseract binary if not on PATH.
    """

    def __init__(
        self,
        language: str | None = None,
        tesseract_cmd: str | None = None,
    ) -> None:
        self._language = language or settings.OCR_LANGUAGE
        cmd = tesseract_cmd or settings.TESSERACT_CMD
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd

    async def recognize(self, image: bytes) -> AsyncIterator[RecognitionEvent]:
        yield RecognitionProgress(LOADING_STATUS, 0.0)
        try:
            pil_image = await asyncio.to_thread(self._load_image, image)
        except Exception as e:
            logger.warning("Could not decode image for OCR: %s", e)
            yield RecognitionFailed(RecognitionError(f"Unreadable image: {e}"))
            return
        yield RecognitionProgress(LOADING_STATUS, 1.0)

        yield RecognitionProgress(INITIALIZING_STATUS, 1.0)

        yield RecognitionProgress(RECOGNIZING_STATUS, 0.0)
        try:
            text = await asyncio.to_thread(self._image_to_string, pil_image)
        except Exception as e:
            logger.warning("Tesseract failed: %s", e)
            yield RecognitionFailed(RecognitionError(f"OCR failed: {e}"))
            return
        finally:
            pil_image.close()
        yield RecognitionProgress(RECOGNIZING_STATUS, 1.0)

        logger.info("Tesseract recognized %d chars", len(text))
        yield Recognized(text)

    @staticmethod
    def _load_image(data: bytes) -> Image.Image:
        """Decode bytes into an upright RGB/L image (phone photos carry EXIF rotation)."""
        img = Image.open(io.BytesIO(data))
        img.load()
        img = ImageOps.exif_transpose(img) or img
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        return img

    def _image_to_string(self, img: Image.Image) -> str:
        return pytesseract.image_to_string(img, lang=self._language)


MOCK_TRANSCRIPT: Final[str] = (
    "Patient seen for follow-up.\n"
    "BP 120/80, HR 72.\n"
    "Plan: continue current medication, review in 4 weeks.\n"
)


class MockRecognizer:
    """
    Deterministic recognizer for local development without tesseract.

    Emits a few "recognizing text" steps so progress rendering can be
    exercised, then returns ``text``.
    """

    def __init__(self, text: str = MOCK_TRANSCRIPT, steps: int = 4) -> None:
        self._text = text
        self._steps = max(steps, 1)

    async def recognize(self, image: bytes) -> AsyncIterator[RecognitionEvent]:
        yield RecognitionProgress(LOADING_STATUS, 1.0)
        for i in range(self._steps + 1):
            yield RecognitionProgress(RECOGNIZING_STATUS, i / self._steps)
            await asyncio.sleep(0)
        yield Recognized(self._text)


def build_recognizer(backend: str | None = None) -> Recognizer:
    """
    Create the configured OCR back-end.

    Falls back to the mock back-end when ``OCR_BACKEND=mock``.

    Raises:
        ValueError: If the backend name is unknown.
    """
    name = (backend or settings.OCR_BACKEND).lower()
    if name == "tesseract":
        return TesseractRecognizer()
    if name == "mock":
        logger.warning("Using mock OCR back-end - transcripts are fake")
        return MockRecognizer()
    raise ValueError(f"Unknown OCR_BACKEND: '{name}'. Supported: tesseract, mock")
