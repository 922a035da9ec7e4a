"""
Upload Adapter

Durable storage for the original files behind scan notes. The note store
and the ingestion pipeline only depend on the ``UploadAdapter`` protocol;
``LocalUploadAdapter`` keeps files on disk and is served read-only by the
application under ``UPLOAD_BASE_URL``.

Storage ids are namespaced per owner and never reuse a name:

    <sha256(owner)[:16]>/<epoch-ms>_<random>_<sanitized file name>
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from casenote.core.config import settings
from casenote.core.exceptions import UploadFailure

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


@dataclass(frozen=True)
class StoredFile:
    """Result of a successful upload."""

    url: str
    storage_id: str


class UploadAdapter(Protocol):
    """Storage contract: save raw bytes, release them later."""

    async def save(
        self,
        data: bytes,
        file_name: str,
        media_type: str,
        owner_id: str,
    ) -> StoredFile:
        """Persist ``data`` and return where it can be retrieved. Raises UploadFailure."""
        ...

    async def delete(self, storage_id: str) -> None:
        """Release a stored file. Raises UploadFailure."""
        ...


def sanitize_file_name(file_name: str) -> str:
    """Replace anything outside ``[a-zA-Z0-9.-]`` with ``_``."""
    cleaned = _UNSAFE_CHARS.sub("_", file_name.strip()) or "upload"
    # Leading dots would create hidden files
    return cleaned.lstrip(".") or "upload"


def owner_folder(owner_id: str) -> str:
    """Stable, non-reversible folder name for an owner."""
    return hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:16]


class LocalUploadAdapter:
    """
    Filesystem-backed upload adapter.

    Blocking file I/O is offloaded to a thread pool via asyncio.to_thread.

    Usage::

        uploads = LocalUploadAdapter(Path("uploads"), base_url="/files")
        stored = await uploads.save(raw, "scan.pdf", "application/pdf", owner)
        await uploads.delete(stored.storage_id)
    """

    def __init__(self, root: Path, base_url: str = "/files") -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    async def save(
        self,
        data: bytes,
        file_name: str,
        media_type: str,
        owner_id: str,
    ) -> StoredFile:
        name = (
            f"{int(time.time() * 1000)}_{uuid4().hex[:8]}_"
            f"{sanitize_file_name(file_name)}"
        )
        storage_id = f"{owner_folder(owner_id)}/{name}"
        path = self._resolve(storage_id)

        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            logger.error("Upload failed for '%s': %s", file_name, e)
            raise UploadFailure(f"Upload failed: {e.strerror or e}") from e

        logger.info(
            "Stored upload '%s' (%s, %d bytes) as %s",
            file_name,
            media_type or "unknown type",
            len(data),
            storage_id,
        )
        return StoredFile(url=f"{self._base_url}/{storage_id}", storage_id=storage_id)

    async def delete(self, storage_id: str) -> None:
        path = self._resolve(storage_id)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise UploadFailure(f"Could not delete {storage_id}: {e}") from e
        logger.info("Released upload %s", storage_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve(self, storage_id: str) -> Path:
        """Map a storage id to a path, refusing anything outside the root."""
        root = self._root.resolve()
        path = (root / storage_id).resolve()
        if not path.is_relative_to(root) or path == root:
            raise UploadFailure(f"Invalid storage id: {storage_id!r}")
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # "xb": never overwrite an existing upload
        with path.open("xb") as fh:
            fh.write(data)


@lru_cache(maxsize=1)
def get_upload_adapter() -> UploadAdapter:
    """FastAPI dependency — process-wide adapter built from settings."""
    return LocalUploadAdapter(Path(settings.UPLOAD_DIR), settings.UPLOAD_BASE_URL)
