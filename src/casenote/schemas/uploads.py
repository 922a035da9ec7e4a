"""Upload Schemas."""

from __future__ import annotations

from casenote.models.schemas import CamelModel


class UploadResponse(CamelModel):
    """Response for POST /uploads."""

    success: bool = True
    url: str
    storage_id: str
