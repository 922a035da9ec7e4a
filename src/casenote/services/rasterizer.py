"""
PDF Rasterizer

Renders the first page of a PDF into a PNG image for OCR, via PyMuPDF
(fitz). Later pages are ignored: only page 1 of a document is transcribed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import fitz  # PyMuPDF

from casenote.core.config import settings
from casenote.core.exceptions import RasterizationError

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class RasterImage:
    """A rendered page, ready for the recognizer."""

    data: bytes
    width: int
    height: int
    media_type: str = PNG_MEDIA_TYPE


class PdfRasterizer:
    """
    Converts page 1 of a PDF into a fixed-scale raster image.

    Rendering is CPU-bound and runs in a worker thread via
    ``asyncio.to_thread``. Any decode or render fault becomes a
    RasterizationError so callers only deal with one failure type.

    Usage::

        rasterizer = PdfRasterizer()
        image = await rasterizer.rasterize(pdf_bytes)
        image.width, image.height  # 2x the page size in points
    """

    def __init__(self, scale: float | None = None) -> None:
        self._scale = scale or settings.PDF_RENDER_SCALE

    @property
    def scale(self) -> float:
        return self._scale

    async def rasterize(self, pdf_bytes: bytes) -> RasterImage:
        """
        Render the first page of ``pdf_bytes``.

        Raises:
            RasterizationError: If the bytes are not a readable PDF or the
                document has no pages.
        """
        try:
            image = await asyncio.to_thread(self._render_first_page, pdf_bytes)
        except RasterizationError:
            raise
        except Exception as e:
            # fitz raises a mix of RuntimeError / FileDataError / ValueError
            raise RasterizationError(f"Could not render PDF: {e}") from e

        logger.info(
            "Rasterized PDF page 1 at %.1fx -> %dx%d px",
            self._scale,
            image.width,
            image.height,
        )
        return image

    def _render_first_page(self, pdf_bytes: bytes) -> RasterImage:
        """
        Synchronous render helper.

        Always call via ``asyncio.to_thread`` to keep the event loop free.
        """
        if not pdf_bytes:
            raise RasterizationError("Empty PDF")

        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            if doc.page_count < 1:
                raise RasterizationError("PDF has no pages")
            if doc.page_count > 1:
                logger.info(
                    "PDF has %d pages, only page 1 is transcribed", doc.page_count
                )
            page = doc.load_page(0)
            matrix = fitz.Matrix(self._scale, self._scale)
            pix = page.get_pixmap(matrix=matrix, alpha=False)
            return RasterImage(
                data=pix.tobytes("png"),
                width=pix.width,
                height=pix.height,
            )
        finally:
            doc.close()
