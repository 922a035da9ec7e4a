"""
Application Exceptions

Error taxonomy shared by the note store, the ingestion pipeline and the
upload adapter. The API layer maps each class to an HTTP status in
``casenote.main``; ingestion failures are never surfaced to the user and are
absorbed into the job result instead.
"""

from __future__ import annotations


class CaseNoteError(Exception):
    """Base exception for the application."""

    pass


class ValidationError(CaseNoteError):
    """
    Missing or invalid input on create/update.

    API layer maps this to 400 Bad Request with a field-level message.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class AuthError(CaseNoteError):
    """Missing or invalid caller identity (401)."""

    pass


class NotFoundOrForbidden(CaseNoteError):
    """
    Update/delete target is absent or owned by someone else (404).

    Both causes share one message so callers cannot probe for other
    owners' records.
    """

    def __init__(self) -> None:
        super().__init__("Note not found or unauthorized")


class IngestionFailure(CaseNoteError):
    """Any rasterization or recognition fault."""

    pass


class UnsupportedMediaType(IngestionFailure):
    """Input is neither an image nor a PDF."""

    pass


class RasterizationError(IngestionFailure):
    """The PDF could not be decoded or its first page rendered."""

    pass


class RecognitionError(IngestionFailure):
    """The OCR engine failed on the input image."""

    pass


class UploadFailure(CaseNoteError):
    """
    Storage adapter fault, distinct from IngestionFailure.

    API layer maps this to 502 so the caller can retry the upload or save
    the note transcript-only.
    """

    pass


class JobStateError(CaseNoteError):
    """Operation not allowed in the current ingestion stage (409)."""

    pass


__all__ = [
    "CaseNoteError",
    "ValidationError",
    "AuthError",
    "NotFoundOrForbidden",
    "IngestionFailure",
    "UnsupportedMediaType",
    "RasterizationError",
    "RecognitionError",
    "UploadFailure",
    "JobStateError",
]
